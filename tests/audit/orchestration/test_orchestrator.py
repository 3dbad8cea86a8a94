"""Integration tests for the consent audit state machine over fake pages."""

from contextlib import asynccontextmanager

import pytest

from consent_sentinel.audit.cmp.library import InMemoryCMPLibrary
from consent_sentinel.audit.errors import LibraryError, PageUnavailable
from consent_sentinel.audit.interactive import ElementDescriptor
from consent_sentinel.audit.models.audit import AuditPhase, AuditStatus, FunnelStage, FunnelStep, StepType
from consent_sentinel.audit.orchestration.orchestrator import ConsentAudit


GA_COLLECT = "https://region1.google-analytics.com/g/collect?v=2&tid=G-ABC123&en=page_view&gcs={gcs}"
VIEW_ITEM = {"event": "view_item", "ecommerce": {"items": [{"item_id": "SKU-1", "price": "19.99"}]}}


def _operator_clicks():
    return [ElementDescriptor(selector="button.agree"), ElementDescriptor(selector="button.deny")]


def _landing(d):
    d.data_layer = [{"event": "gtm.js"}]
    d.emit("https://shop.example.com/static/app.js")
    d.emit("https://www.googletagmanager.com/gtm.js?id=GTM-ABC123")


def _accept_page(make_driver, site_url):
    driver = make_driver()
    driver.visible = {"#acme-accept"}
    driver.on_navigate[site_url] = _landing

    def accept(d):
        d.set_cookie("_ga", ".example.com")
        d.data_layer.append({"event": "consent_update"})
        d.emit(GA_COLLECT.format(gcs="G111"))

    driver.on_click["#acme-accept"] = accept
    return driver


def _reject_page(make_driver, site_url):
    driver = make_driver()
    driver.visible = {"#acme-reject"}
    driver.on_navigate[site_url] = _landing
    driver.on_click["#acme-reject"] = lambda d: d.set_cookie("consent", "shop.example.com")
    return driver


class TestConsentAudit:
    """Test a full run: pre-consent, accept, reject."""

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_accept_and_reject_paths(self, fast_settings, site_url, make_driver, context_factory, acme_cmp):
        accept_driver = _accept_page(make_driver, site_url)
        reject_driver = _reject_page(make_driver, site_url)
        factory = context_factory(accept_driver, reject_driver)
        audit = ConsentAudit(
            settings=fast_settings,
            cmp_store=InMemoryCMPLibrary([acme_cmp]),
            context_factory=factory,
        )

        result = await audit.run(site_url)

        assert result.status == AuditStatus.COMPLETE
        assert result.site_domain == "example.com"
        assert result.cmp.key == "acme"
        assert result.cmp.source == "fast_pass"
        assert factory.opened == [site_url, site_url]
        assert [record.phase for record in result.records] == [
            AuditPhase.PRE_CONSENT, AuditPhase.POST_ACCEPT, AuditPhase.POST_REJECT,
        ]

        pre = result.record_for(AuditPhase.PRE_CONSENT)
        assert [group.key for group in pre.known_trackers] == ["google-tag-manager"]
        assert pre.data_layer_diff == [{"event": "gtm.js"}]
        assert pre.request_count == 2

        accept = result.record_for(AuditPhase.POST_ACCEPT)
        assert [cookie.name for cookie in accept.cookies_diff] == ["_ga"]
        assert accept.data_layer_diff == [{"event": "consent_update"}]
        assert [group.key for group in accept.known_trackers] == ["google-analytics-4"]
        assert accept.consent_mode_diff.updated is True
        assert accept.interaction["success"] is True

        reject = result.record_for(AuditPhase.POST_REJECT)
        assert reject.known_trackers == []
        assert [cookie.name for cookie in reject.cookies_diff] == ["consent"]
        assert reject.request_count == 0
        assert result.reject_clean is True
        assert reject_driver.clicks == ["#acme-reject"]

        assert result.consent_mode_type == "basic"
        assert result.sst.containers == ["GTM-ABC123"]
        assert [finding.code for finding in result.findings] == ["trackers_pre_consent"]

    @pytest.mark.asyncio
    async def test_reject_leaking_trackers(self, fast_settings, site_url, make_driver, context_factory, acme_cmp):
        reject_driver = _reject_page(make_driver, site_url)
        reject_driver.on_click["#acme-reject"] = lambda d: d.emit("https://www.facebook.com/tr?id=1&ev=PageView")
        audit = ConsentAudit(
            settings=fast_settings,
            cmp_store=InMemoryCMPLibrary([acme_cmp]),
            context_factory=context_factory(_accept_page(make_driver, site_url), reject_driver),
        )

        result = await audit.run(site_url)

        assert result.reject_clean is False
        assert "trackers_after_reject" in [finding.code for finding in result.findings]

    @pytest.mark.asyncio
    async def test_pinned_cmp(self, fast_settings, site_url, make_driver, context_factory, acme_cmp):
        accept_driver = _accept_page(make_driver, site_url)
        accept_driver.visible = set()
        audit = ConsentAudit(
            settings=fast_settings,
            cmp_store=InMemoryCMPLibrary([acme_cmp]),
            context_factory=context_factory(accept_driver, _reject_page(make_driver, site_url)),
        )

        result = await audit.run(site_url, cmp_key="ACME")

        assert result.cmp.source == "pinned"
        assert accept_driver.clicks == ["#acme-accept"]

    @pytest.mark.asyncio
    async def test_unknown_pinned_cmp(self, fast_settings, site_url, context_factory, acme_cmp):
        audit = ConsentAudit(
            settings=fast_settings,
            cmp_store=InMemoryCMPLibrary([acme_cmp]),
            context_factory=context_factory(),
        )

        with pytest.raises(LibraryError):
            await audit.run(site_url, cmp_key="nope")


class TestFailures:
    """Test degraded runs."""

    @pytest.mark.asyncio
    async def test_initial_navigation_failure(self, fast_settings, site_url, make_driver, context_factory, acme_cmp):
        driver = make_driver()
        driver.failing_navigations = {site_url}
        factory = context_factory(driver)
        audit = ConsentAudit(settings=fast_settings, cmp_store=InMemoryCMPLibrary([acme_cmp]), context_factory=factory)

        result = await audit.run(site_url)

        assert result.status == AuditStatus.PARTIAL
        assert result.records == []
        assert result.failures[0].phase == AuditPhase.INIT
        assert result.failures[0].fatal
        assert factory.opened == [site_url]

    @pytest.mark.asyncio
    async def test_reject_click_failure_unattended(self, fast_settings, site_url, make_driver, context_factory, acme_cmp):
        reject_driver = _reject_page(make_driver, site_url)
        reject_driver.failing_clicks = {"#acme-reject"}
        audit = ConsentAudit(
            settings=fast_settings,
            cmp_store=InMemoryCMPLibrary([acme_cmp]),
            context_factory=context_factory(_accept_page(make_driver, site_url), reject_driver),
        )

        result = await audit.run(site_url)

        assert result.status == AuditStatus.PARTIAL
        assert result.record_for(AuditPhase.POST_REJECT) is None
        assert result.reject_clean is False
        assert result.failures[0].phase == AuditPhase.POST_REJECT
        assert result.record_for(AuditPhase.POST_ACCEPT) is not None

    @pytest.mark.asyncio
    async def test_no_banner_unattended(self, fast_settings, site_url, make_driver, context_factory, acme_cmp):
        accept_driver = _accept_page(make_driver, site_url)
        accept_driver.visible = set()
        audit = ConsentAudit(
            settings=fast_settings,
            cmp_store=InMemoryCMPLibrary([acme_cmp]),
            context_factory=context_factory(accept_driver, _reject_page(make_driver, site_url)),
        )

        result = await audit.run(site_url)

        assert result.cmp.manual is True
        assert [failure.phase for failure in result.failures] == [AuditPhase.POST_ACCEPT, AuditPhase.POST_REJECT]
        assert [record.phase for record in result.records] == [AuditPhase.PRE_CONSENT]
        assert result.status == AuditStatus.PARTIAL

    @pytest.mark.asyncio
    async def test_manual_fallback_used_once(
        self, fast_settings, site_url, make_driver, make_surface, context_factory, acme_cmp
    ):
        accept_driver = _accept_page(make_driver, site_url)
        accept_driver.failing_clicks = {"#acme-accept"}
        reject_driver = _reject_page(make_driver, site_url)
        reject_driver.failing_clicks = {"#acme-reject"}
        surface = make_surface(clicks=_operator_clicks())
        audit = ConsentAudit(
            settings=fast_settings,
            cmp_store=InMemoryCMPLibrary([acme_cmp]),
            surface=surface,
            context_factory=context_factory(accept_driver, reject_driver),
        )

        result = await audit.run(site_url)

        accept = result.record_for(AuditPhase.POST_ACCEPT)
        assert accept.interaction["manual"] is True
        assert accept.interaction["element_selector"] == "button.agree"
        assert accept.interaction["descriptor_key"] == "acme"
        assert result.record_for(AuditPhase.POST_REJECT) is None
        assert result.failures[0].phase == AuditPhase.POST_REJECT

    @pytest.mark.asyncio
    async def test_reject_context_crash_keeps_accept_records(
        self, fast_settings, site_url, make_driver, context_factory, acme_cmp
    ):
        accept_context = context_factory(_accept_page(make_driver, site_url))
        opened = []

        @asynccontextmanager
        async def factory(site_origin):
            opened.append(site_origin)
            if len(opened) > 1:
                raise RuntimeError("Browser has been closed")
            async with accept_context(site_origin) as driver:
                yield driver

        audit = ConsentAudit(settings=fast_settings, cmp_store=InMemoryCMPLibrary([acme_cmp]), context_factory=factory)

        result = await audit.run(site_url)

        assert result.status == AuditStatus.PARTIAL
        assert [record.phase for record in result.records] == [AuditPhase.PRE_CONSENT, AuditPhase.POST_ACCEPT]
        assert len(result.failures) == 1
        failure = result.failures[0]
        assert failure.phase == AuditPhase.POST_REJECT
        assert failure.fatal
        assert "Browser has been closed" in failure.error
        assert result.reject_clean is False
        assert result.sst.containers == ["GTM-ABC123"]
        assert "trackers_pre_consent" in [finding.code for finding in result.findings]

    @pytest.mark.asyncio
    async def test_page_closed_during_settle(self, fast_settings, site_url, make_driver, context_factory, acme_cmp):
        accept_driver = _accept_page(make_driver, site_url)
        reject_driver = _reject_page(make_driver, site_url)

        async def closing_wait(ms):
            if "#acme-accept" in accept_driver.clicks:
                raise PageUnavailable("Target page, context or browser has been closed")

        accept_driver.wait = closing_wait
        audit = ConsentAudit(
            settings=fast_settings,
            cmp_store=InMemoryCMPLibrary([acme_cmp]),
            context_factory=context_factory(accept_driver, reject_driver),
        )

        result = await audit.run(site_url)

        assert result.status == AuditStatus.PARTIAL
        assert [record.phase for record in result.records] == [AuditPhase.PRE_CONSENT, AuditPhase.POST_REJECT]
        assert result.failures[0].phase == AuditPhase.POST_ACCEPT
        assert "PageUnavailable" in result.failures[0].error
        assert reject_driver.clicks == ["#acme-reject"]
        assert result.reject_clean is True

    @pytest.mark.asyncio
    async def test_crash_before_cmp_detection_ends_run(
        self, fast_settings, site_url, make_driver, context_factory, acme_cmp
    ):
        driver = make_driver()

        async def closing_wait(ms):
            raise PageUnavailable("Target closed")

        driver.wait = closing_wait
        factory = context_factory(driver, make_driver())
        audit = ConsentAudit(settings=fast_settings, cmp_store=InMemoryCMPLibrary([acme_cmp]), context_factory=factory)

        result = await audit.run(site_url)

        assert result.status == AuditStatus.PARTIAL
        assert result.records == []
        assert result.failures[0].phase == AuditPhase.INIT
        assert factory.opened == [site_url]


class TestManualCapture:
    """Test operator-driven consent and descriptor learning."""

    @pytest.mark.asyncio
    async def test_learns_descriptor(self, fast_settings, site_url, make_driver, make_surface, context_factory):
        store = InMemoryCMPLibrary()
        surface = make_surface(clicks=_operator_clicks(), text="Shop Banner")
        audit = ConsentAudit(
            settings=fast_settings,
            cmp_store=store,
            surface=surface,
            context_factory=context_factory(_accept_page(make_driver, site_url), _reject_page(make_driver, site_url)),
        )

        result = await audit.run(site_url)

        assert result.status == AuditStatus.COMPLETE
        assert result.cmp.manual is True
        assert len(store.saved) == 1
        learned = store.saved[0]
        assert learned.key == "shop-banner"
        assert learned.accept_selector == "button.agree"
        assert learned.reject_selector == "button.deny"

    @pytest.mark.asyncio
    async def test_learning_disabled(self, fast_settings, site_url, make_driver, make_surface, context_factory):
        store = InMemoryCMPLibrary()
        fast_settings.learn_manual_cmp = False
        audit = ConsentAudit(
            settings=fast_settings,
            cmp_store=store,
            surface=make_surface(clicks=_operator_clicks(), text="Shop Banner"),
            context_factory=context_factory(_accept_page(make_driver, site_url), _reject_page(make_driver, site_url)),
        )

        await audit.run(site_url)

        assert store.saved == []


class TestFunnel:
    """Test funnel steps between accept and reject."""

    @pytest.mark.asyncio
    async def test_funnel_records_and_consistency(self, fast_settings, site_url, make_driver, context_factory, acme_cmp):
        accept_driver = _accept_page(make_driver, site_url)

        def product_page(d):
            d.data_layer = [{"event": "gtm.js"}, VIEW_ITEM]

        accept_driver.on_navigate["https://shop.example.com/p/sku-1"] = product_page
        accept_driver.on_click["button.add"] = lambda d: d.data_layer.append(
            {"event": "add_to_cart", "ecommerce": {"items": [{"item_id": "SKU-1", "price": 17.99}]}}
        )
        funnel = [
            FunnelStep(name="Product", type=StepType.NAVIGATE, target="/p/sku-1", stage=FunnelStage.PRODUCT),
            FunnelStep(name="Add", type=StepType.CLICK, target="button.add", stage=FunnelStage.ADD_TO_CART),
            FunnelStep(name="Wishlist", type=StepType.CLICK, target="button.missing"),
        ]
        accept_driver.failing_clicks = {"button.missing"}
        audit = ConsentAudit(
            settings=fast_settings,
            cmp_store=InMemoryCMPLibrary([acme_cmp]),
            context_factory=context_factory(accept_driver, _reject_page(make_driver, site_url)),
        )

        result = await audit.run(site_url, funnel=funnel)

        assert [step.name for step in result.funnel] == ["Product", "Add", "Wishlist"]
        assert result.funnel[2].skipped
        assert [record.phase for record in result.records].count(AuditPhase.FUNNEL_STEP) == 2
        assert result.consistency.focus_product.id == "SKU-1"
        assert [prop.prop for prop in result.consistency.inconsistent_props] == ["price"]
        assert "inconsistent_product_data" in [finding.code for finding in result.findings]
        assert result.status == AuditStatus.PARTIAL
        assert result.failures[0].fatal is False
