"""Phase-boundary snapshot capture.

Reads ``window.dataLayer``, the context's cookies and the page's
localStorage through the driver. The dataLayer is cloned in-page with a
depth limit so functions, DOM nodes and cycles never reach Python.
"""

import logging
from typing import Any, List, Optional, Sequence

from ..capture.driver import PageDriver
from ..models.audit import ConsentModeSignal, PhaseSnapshot

logger = logging.getLogger(__name__)


DATA_LAYER_SCRIPT = """
(objectName) => {
    const maxDepth = 10;
    function safeClone(obj, depth, seen) {
        if (obj === null || obj === undefined) return obj === undefined ? null : obj;
        if (typeof obj === 'function') return '[FUNCTION]';
        if (typeof obj !== 'object') return obj;
        if (depth > maxDepth) return '[TRUNCATED_DEPTH]';
        if (obj.nodeType || obj.window === obj) return '[DOM_OBJECT]';
        if (seen.has(obj)) return '[CIRCULAR]';
        seen.add(obj);
        let result;
        if (Array.isArray(obj)) {
            result = obj.map(item => safeClone(item, depth + 1, seen));
        } else {
            result = {};
            for (const key of Object.keys(obj)) {
                try {
                    result[key] = safeClone(obj[key], depth + 1, seen);
                } catch (e) {
                    result[key] = `[ERROR: ${e.message}]`;
                }
            }
        }
        seen.delete(obj);
        return result;
    }
    const dl = window[objectName];
    if (!Array.isArray(dl)) return [];
    return Array.from(dl).map(entry => safeClone(entry, 0, new WeakSet()));
}
"""


class SnapshotCollector:
    """Captures PhaseSnapshots from a page driver."""

    def __init__(self, data_layer_object: str = "dataLayer"):
        self.data_layer_object = data_layer_object

    async def capture(
        self,
        driver: PageDriver,
        consent_mode: Optional[Sequence[ConsentModeSignal]] = None
    ) -> PhaseSnapshot:
        """Take a snapshot of dataLayer, cookies and localStorage.

        Failures of individual reads degrade to empty values; a snapshot is
        always returned.

        Args:
            driver: Page to read from
            consent_mode: Consent-mode signals observed up to this boundary

        Returns:
            PhaseSnapshot for the current page state
        """
        data_layer = await self.read_data_layer(driver)
        cookies = await driver.read_cookies()
        local_storage = await driver.read_local_storage()

        logger.debug(
            f"Snapshot: dataLayer={len(data_layer)} cookies={len(cookies)} "
            f"localStorage={len(local_storage)}"
        )

        return PhaseSnapshot(
            data_layer=data_layer,
            cookies=cookies,
            local_storage=local_storage,
            consent_mode=list(consent_mode or []),
        )

    async def read_data_layer(self, driver: PageDriver) -> List[Any]:
        try:
            result = await driver.evaluate(DATA_LAYER_SCRIPT, self.data_layer_object)
        except Exception as e:
            logger.warning(f"Failed to read {self.data_layer_object}: {e}")
            return []
        return result if isinstance(result, list) else []
