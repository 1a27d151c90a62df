"""End-to-end tests for the toolkit context and document bootstrap."""

from __future__ import annotations

import asyncio
from pathlib import Path
import tempfile
from typing import Any
import unittest

from behaviourkit.config import DEFAULT_CONFIG
from behaviourkit.events import BEHAVIOURS_APPLIED, INSTANCE_REMOVED
from behaviourkit.handlers import ImportHandlerLoader
from behaviourkit.toolkit import Toolkit, get_toolkit, set_toolkit


class Greeter:
    """A behaviour that greets and listens on the bus until it is removed."""

    instances: list[Greeter] = []

    def __init__(self, element: Any, options: Any, toolkit: Toolkit) -> None:
        self.element = element
        self.options = options
        self.toolkit = toolkit
        self.heard: list[Any] = []
        toolkit.bus.subscribe("greeting.requested", self.on_request).bind_lifetime(self)
        Greeter.instances.append(self)

    def on_request(self, values: Any, name: str) -> None:
        self.heard.append(values)
        self.element.string = f"Hello {self.options['name']}"

    def remove(self) -> None:
        self.toolkit.bus.publish(INSTANCE_REMOVED, self)


class EndToEndTests(unittest.TestCase):
    """Validate binding a parsed document through the toolkit."""

    def setUp(self) -> None:
        Greeter.instances = []

    def test_greet_marker_with_json_options(self) -> None:
        toolkit = Toolkit()
        calls: list[tuple[Any, Any]] = []
        toolkit.register_handler("greet", lambda element, options: calls.append((element, options)))
        document = toolkit.load_document(
            '<div class="jsb_ jsb_greet" data-greet=\'{"name":"Ann"}\'></div>'
        )

        toolkit.apply_behaviour(document)

        self.assertEqual(calls, [(document.div, {"name": "Ann"})])
        self.assertIsNone(document.div.get("class"))
        self.assertEqual(str(document), '<div data-greet=\'{"name":"Ann"}\'></div>')

    def test_handlers_talk_over_the_bus_and_unbind_on_removal(self) -> None:
        toolkit = Toolkit()
        toolkit.register_handler(
            "greet", lambda element, options: Greeter(element, options, toolkit)
        )
        document = toolkit.load_document(
            '<p class="jsb_ jsb_greet" data-greet="name=Ann"></p>'
            '<p class="jsb_ jsb_greet" data-greet="name=Bob"></p>'
        )
        toolkit.apply_behaviour(document)
        ann, bob = Greeter.instances

        toolkit.bus.publish("greeting.requested", {"n": 1})
        ann.remove()
        toolkit.bus.publish("greeting.requested", {"n": 2})

        self.assertEqual(ann.heard, [{"n": 1}])
        self.assertEqual(bob.heard, [{"n": 1}, {"n": 2}])
        self.assertEqual(
            [p.string for p in document.find_all("p")], ["Hello Ann", "Hello Bob"]
        )

    def test_handler_decorator_registers(self) -> None:
        toolkit = Toolkit()

        @toolkit.handler("wave")
        def wave(element: Any, options: Any) -> str:
            return "waved"

        self.assertIs(toolkit.registry.get("wave"), wave)

    def test_registration_after_a_pass_applies_to_the_next_pass(self) -> None:
        toolkit = Toolkit()
        calls: list[str] = []
        toolkit.register_handler("a", lambda element, options: calls.append("a"))
        toolkit.apply_behaviour(toolkit.load_document('<i class="jsb_ jsb_a"></i>'))

        toolkit.register_handler("b", lambda element, options: calls.append("b"))
        toolkit.apply_behaviour(toolkit.load_document('<i class="jsb_ jsb_b"></i>'))

        self.assertEqual(calls, ["a", "b"])

    def test_toolkits_are_independent(self) -> None:
        first, second = Toolkit(), Toolkit()
        first.register_handler("greet", lambda element, options: None)
        first.bus.publish("x", {"a": 1})

        self.assertNotIn("greet", second.registry)
        self.assertIsNone(second.bus.last_value("x"))

    def test_config_sets_prefix_and_options_attribute(self) -> None:
        config = {
            **DEFAULT_CONFIG,
            "markers": {"prefix": "app", "options_attribute": "data-app"},
        }
        toolkit = Toolkit(config)
        seen: list[Any] = []
        toolkit.register_handler("menu", lambda element, options: seen.append(options))

        toolkit.apply_behaviour(
            toolkit.load_document('<nav class="app_ app_menu" data-app-menu="open=1"></nav>')
        )

        self.assertEqual(toolkit.markers.prefix, "app_")
        self.assertEqual(seen, [{"open": "1"}])

    def test_partial_config_is_merged_over_defaults(self) -> None:
        toolkit = Toolkit({"markers": {"prefix": "app"}})

        self.assertEqual(toolkit.markers.prefix, "app_")
        self.assertEqual(toolkit.binder.options_attribute, "data")
        self.assertIsNone(toolkit.registry.loader)
        self.assertEqual(DEFAULT_CONFIG["markers"]["prefix"], "jsb")

    def test_set_prefix(self) -> None:
        toolkit = Toolkit()
        toolkit.set_prefix("ui")
        self.assertEqual(toolkit.binder.markers.prefix, "ui_")

    def test_loader_enabled_in_config(self) -> None:
        config = {
            **DEFAULT_CONFIG,
            "loader": {"enabled": True, "package_prefix": "site.", "export": "Behaviour"},
        }
        toolkit = Toolkit(config)
        loader = toolkit.registry.loader
        self.assertIsInstance(loader, ImportHandlerLoader)
        assert isinstance(loader, ImportHandlerLoader)
        self.assertEqual(loader.package_prefix, "site.")
        self.assertEqual(loader.export, "Behaviour")

    def test_loader_disabled_by_default(self) -> None:
        self.assertIsNone(Toolkit().registry.loader)

    def test_from_config_file(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = Path(temp_dir) / "config.toml"
            config_path.write_text('[markers]\nprefix = "ui"\n', encoding="utf-8")
            toolkit = Toolkit.from_config_file(config_path)
        self.assertEqual(toolkit.markers.prefix, "ui_")


class DocumentReadyTests(unittest.TestCase):
    """Validate the once-only document bootstrap."""

    def test_document_ready_binds_exactly_once(self) -> None:
        toolkit = Toolkit()
        calls: list[Any] = []
        applied: list[Any] = []
        toolkit.register_handler("greet", lambda element, options: calls.append(element))
        toolkit.bus.subscribe(BEHAVIOURS_APPLIED, lambda values, name: applied.append(values))
        document = toolkit.load_document('<div class="jsb_ jsb_greet"></div>')

        self.assertTrue(toolkit.document_ready(document))
        with self.assertLogs("behaviourkit.toolkit", level="WARNING"):
            self.assertFalse(toolkit.document_ready(document))

        self.assertEqual(len(calls), 1)
        self.assertEqual(len(applied), 1)


class DefaultToolkitTests(unittest.TestCase):
    """Validate the shared default accessor."""

    def tearDown(self) -> None:
        set_toolkit(None)

    def test_get_toolkit_is_cached(self) -> None:
        self.assertIs(get_toolkit(), get_toolkit())

    def test_set_toolkit_replaces_and_resets(self) -> None:
        custom = Toolkit()
        set_toolkit(custom)
        self.assertIs(get_toolkit(), custom)
        set_toolkit(None)
        self.assertIsNot(get_toolkit(), custom)


class AsyncToolkitTests(unittest.IsolatedAsyncioTestCase):
    """Validate deferred work and replay through the toolkit."""

    async def test_late_listener_catches_up_on_behaviours_applied(self) -> None:
        toolkit = Toolkit()
        toolkit.apply_behaviour(toolkit.load_document("<p></p>"))
        seen: list[str] = []

        toolkit.bus.subscribe_and_replay(BEHAVIOURS_APPLIED, lambda values, name: seen.append(name))
        await asyncio.sleep(0)

        self.assertEqual(seen, [BEHAVIOURS_APPLIED])

    async def test_loader_backed_toolkit_drains(self) -> None:
        seen: list[Any] = []

        async def loader(key: str) -> Any:
            return lambda element, options: seen.append((key, options))

        toolkit = Toolkit(loader=loader)
        toolkit.document_ready(
            toolkit.load_document('<div class="jsb_ jsb_lazy/one" data="x=1"></div>')
        )
        await toolkit.drain()

        self.assertEqual(seen, [("lazy/one", {"x": "1"})])


if __name__ == "__main__":
    unittest.main()
