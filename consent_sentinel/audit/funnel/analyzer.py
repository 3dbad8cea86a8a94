"""Funnel product-data consistency analysis.

Post-processes the funnel step records: discovers product data in every
step's dataLayer diff, picks one focus product and checks that its
normalized fields keep the same value through the funnel.
"""

import logging
from typing import List, Optional, Sequence

from ..config.settings import FunnelConfig
from ..models.audit import FunnelStage, FunnelStep
from ..models.funnel import (
    ConsistencyReport,
    InconsistentProperty,
    MissingEvents,
    ObservedProduct,
    ProductRecord,
    StepProduct,
    StepProducts,
    StepValue,
)
from .formats import discover_products

logger = logging.getLogger(__name__)

CONSISTENCY_FIELDS = ("id", "name", "price", "brand", "category", "variant")


class FunnelConsistencyAnalyzer:
    """Builds a ConsistencyReport from executed funnel steps."""

    def __init__(self, config: Optional[FunnelConfig] = None):
        self.config = config or FunnelConfig()

    def analyze(self, steps: Sequence[FunnelStep]) -> ConsistencyReport:
        """Analyze the funnel.

        Skipped steps (no record) take no part in the analysis.

        Args:
            steps: Funnel steps in execution order

        Returns:
            ConsistencyReport
        """
        step_products = [self.collect_step(step) for step in steps if step.record is not None]

        report = ConsistencyReport(step_products=step_products)
        for entry in step_products:
            if entry.format is not None:
                report.format = entry.format
                report.format_path = entry.format_path
                break

        report.missing_events = self.find_missing_events(step_products)
        report.focus_product = self.select_focus_product(step_products)

        if report.focus_product is not None and report.focus_product.id:
            self._check_consistency(report, step_products)
            logger.info(
                f"Focus product {report.focus_product.id}: "
                f"{len(report.consistent_props)} consistent, "
                f"{len(report.inconsistent_props)} inconsistent properties"
            )
        else:
            logger.info("No focus product found in funnel data")

        return report

    def collect_step(self, step: FunnelStep) -> StepProducts:
        """Discover events and products in one step's dataLayer diff."""
        entry = StepProducts(step=step.name, stage=step.stage.value if step.stage else None)

        for item in step.record.data_layer_diff:
            if isinstance(item, dict) and isinstance(item.get("event"), str):
                entry.events.append(item["event"])

            discovered = discover_products(item, self.config.search_depth)
            if discovered is None:
                continue
            if entry.format is None:
                entry.format = discovered.format
                entry.format_path = discovered.path
            for product in discovered.items:
                entry.products.append(ObservedProduct(
                    product=product,
                    event=discovered.event,
                    action=discovered.action,
                    format=discovered.format,
                ))

        return entry

    def find_missing_events(self, step_products: Sequence[StepProducts]) -> List[MissingEvents]:
        """Steps whose expected events never fired and that carried no products."""
        missing = []
        for entry in step_products:
            expected = self.config.expected_events.get(entry.stage or "")
            if not expected:
                continue
            wanted = {name.lower() for name in expected}
            fired = any(event.lower() in wanted for event in entry.events)
            if not fired and not entry.products:
                missing.append(MissingEvents(step=entry.step, expected=list(expected)))
        return missing

    def select_focus_product(self, step_products: Sequence[StepProducts]) -> Optional[ProductRecord]:
        """Pick the product to follow through the funnel.

        A single-product detail event on the product step wins over list
        events there (lists carry cross-sells); otherwise the first product
        of the product step, then of the add-to-cart step. Without stage
        labels the first single-product event of any step is taken, then
        the first product observed at all.
        """
        product_step = self._first_stage(step_products, FunnelStage.PRODUCT)
        if product_step is not None and product_step.products:
            single = self._first_single_product(product_step.products)
            return single or product_step.products[0].product

        cart_step = self._first_stage(step_products, FunnelStage.ADD_TO_CART)
        if cart_step is not None and cart_step.products:
            return cart_step.products[0].product

        observed = [product for entry in step_products for product in entry.products]
        if not observed:
            return None
        return self._first_single_product(observed) or observed[0].product

    def _first_single_product(self, observed: Sequence[ObservedProduct]) -> Optional[ProductRecord]:
        single_events = {name.lower() for name in self.config.single_product_events}
        for entry in observed:
            if entry.event and entry.event.lower() in single_events:
                return entry.product
        return None

    def _check_consistency(self, report: ConsistencyReport, step_products: Sequence[StepProducts]) -> None:
        focus = report.focus_product
        for entry in step_products:
            for observed in entry.products:
                if observed.product.id == focus.id:
                    report.steps_with_product.append(StepProduct(step=entry.step, product=observed.product))
                    break

        for prop in CONSISTENCY_FIELDS:
            if not focus.get(prop):
                continue
            values = [
                StepValue(step=match.step, value=match.product.get(prop))
                for match in report.steps_with_product
                if match.product.get(prop)
            ]
            if len(values) <= 1:
                continue
            if all(value.value == values[0].value for value in values):
                report.consistent_props.append(prop)
            else:
                report.inconsistent_props.append(InconsistentProperty(prop=prop, values=values))

    @staticmethod
    def _first_stage(step_products: Sequence[StepProducts], stage: FunnelStage) -> Optional[StepProducts]:
        for entry in step_products:
            if entry.stage == stage.value:
                return entry
        return None

