"""Unit tests for consent banner clicks."""

import pytest

from consent_sentinel.audit.cmp.automator import ConsentAction, ConsentClicker, ConsentInteractionResult
from consent_sentinel.audit.config.settings import TimingConfig
from consent_sentinel.audit.interactive import ElementDescriptor, HeadlessSurface
from consent_sentinel.audit.models.cmp import CMPDescriptor


@pytest.fixture
def clicker():
    return ConsentClicker(TimingConfig(probe_timeout_ms=0, scroll_wait_ms=0, two_step_wait_ms=0))


@pytest.fixture
def two_step_cmp():
    return CMPDescriptor(
        key="layered",
        name="Layered CMP",
        accept_selector="#accept",
        reject_selector="#reject-inside",
        reject_steps=["#settings", "#reject-inside"],
    )


class TestConsentInteractionResult:
    """Test ConsentInteractionResult serialization."""

    def test_to_dict(self):
        result = ConsentInteractionResult(ConsentAction.REJECT)
        result.success = True
        result.element_selector = "#reject"

        data = result.to_dict()

        assert data["action"] == "reject"
        assert data["success"] is True
        assert data["element_selector"] == "#reject"
        assert data["manual"] is False
        assert "interaction_time" in data


class TestAccept:
    """Test accept clicks."""

    @pytest.mark.asyncio
    async def test_accept_click(self, make_driver, clicker, acme_cmp):
        driver = make_driver()
        driver.visible = {"#acme-accept"}

        result = await clicker.accept(driver, acme_cmp)

        assert result.success
        assert result.descriptor_key == "acme"
        assert result.element_selector == "#acme-accept"
        assert driver.clicks == ["#acme-accept"]
        assert result.scrolled is False

    @pytest.mark.asyncio
    async def test_accept_scrolls_when_hidden(self, make_driver, clicker, acme_cmp):
        driver = make_driver()

        result = await clicker.accept(driver, acme_cmp)

        assert result.scrolled is True
        assert driver.scrolls == 1
        assert result.success

    @pytest.mark.asyncio
    async def test_accept_click_timeout(self, make_driver, clicker, acme_cmp):
        driver = make_driver()
        driver.visible = {"#acme-accept"}
        driver.failing_clicks = {"#acme-accept"}

        result = await clicker.accept(driver, acme_cmp)

        assert result.success is False
        assert len(result.errors) == 1
        assert "#acme-accept" in result.errors[0]


class TestReject:
    """Test direct and two-step reject."""

    @pytest.mark.asyncio
    async def test_direct_reject(self, make_driver, clicker, acme_cmp):
        driver = make_driver()
        driver.visible = {"#acme-reject"}

        result = await clicker.reject(driver, acme_cmp)

        assert result.success
        assert driver.clicks == ["#acme-reject"]

    @pytest.mark.asyncio
    async def test_direct_reject_failure_without_steps(self, make_driver, clicker, acme_cmp):
        driver = make_driver()
        driver.failing_clicks = {"#acme-reject"}

        result = await clicker.reject(driver, acme_cmp)

        assert result.success is False
        assert driver.clicks == []

    @pytest.mark.asyncio
    async def test_two_step_reject(self, make_driver, clicker, two_step_cmp):
        driver = make_driver()
        driver.visible = {"#settings"}
        # The reject control only works once the settings dialog is open
        driver.failing_clicks = {"#reject-inside"}
        driver.on_click["#settings"] = lambda d: d.failing_clicks.discard("#reject-inside")

        result = await clicker.reject(driver, two_step_cmp)

        assert result.success
        assert driver.clicks == ["#settings", "#reject-inside"]
        assert result.element_selector == "#reject-inside"
        assert len(result.errors) == 1

    @pytest.mark.asyncio
    async def test_two_step_reject_failure(self, make_driver, clicker, two_step_cmp):
        driver = make_driver()
        driver.failing_clicks = {"#reject-inside", "#settings"}

        result = await clicker.reject(driver, two_step_cmp)

        assert result.success is False
        assert len(result.errors) == 2


class TestManual:
    """Test operator-captured consent clicks."""

    @pytest.mark.asyncio
    async def test_unattended(self, clicker):
        result = await clicker.manual(HeadlessSurface(), ConsentAction.ACCEPT)

        assert result.success is False
        assert result.manual is True
        assert result.errors

    @pytest.mark.asyncio
    async def test_operator_click(self, clicker, make_surface):
        surface = make_surface(clicks=[ElementDescriptor(selector="button.agree", tag="button")])

        result = await clicker.manual(surface, ConsentAction.ACCEPT)

        assert result.success
        assert result.element_selector == "button.agree"
        assert "ACCEPT" in surface.prompts[0]

    @pytest.mark.asyncio
    async def test_operator_gives_nothing(self, clicker, make_surface):
        result = await clicker.manual(make_surface(clicks=[None]), ConsentAction.REJECT)

        assert result.success is False
        assert result.errors == ["Operator did not capture a reject element"]
