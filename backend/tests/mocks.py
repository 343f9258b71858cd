"""In-memory stand-ins for the Playwright page, the relay HTTP session and the notification sink."""

from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from tgvmax.data.reservations import ANCESTOR_TEXTS_SCRIPT, CONTAINER_SCRIPT
from tgvmax.notifications import EventType, NotificationEvent


class MockElement:
    """Element handle whose state tests flip directly."""

    def __init__(
        self,
        text: str = "",
        visible: bool = True,
        disabled: bool = False,
        ancestor_texts: Optional[List[str]] = None,
        container: Optional[Dict[str, Any]] = None,
        children: Optional[Dict[str, "MockElement"]] = None,
        on_click: Optional[Callable[["MockElement"], None]] = None,
        click_error: Optional[Exception] = None,
        state_error: Optional[Exception] = None,
    ):
        self.text = text
        self.visible = visible
        self.disabled = disabled
        self.ancestor_texts = ancestor_texts or []
        self.container = container
        self.children = children or {}
        self.on_click = on_click
        self.click_error = click_error
        self.state_error = state_error
        self.detached = False
        self.clicks = 0
        self.filled: List[str] = []

    async def click(self, **kwargs) -> None:
        if self.click_error:
            raise self.click_error
        self.clicks += 1
        if self.on_click:
            self.on_click(self)

    async def fill(self, value: str) -> None:
        self.filled.append(value)

    async def is_visible(self) -> bool:
        if self.state_error:
            raise self.state_error
        # Playwright reports a detached handle as not visible
        return self.visible and not self.detached

    async def is_disabled(self) -> bool:
        if self.state_error:
            raise self.state_error
        return self.disabled

    async def inner_text(self) -> str:
        return self.text

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        if expression == CONTAINER_SCRIPT:
            return self.container
        if expression == ANCESTOR_TEXTS_SCRIPT:
            return self.ancestor_texts
        raise AssertionError(f"unexpected element script: {expression[:40]}")

    async def query_selector(self, selector: str) -> Optional["MockElement"]:
        return self.children.get(selector)


class MockContext:
    def __init__(self, cookies: Optional[List[Dict[str, Any]]] = None):
        self._cookies = cookies or []
        self.added: List[Dict[str, Any]] = []

    async def cookies(self) -> List[Dict[str, Any]]:
        return list(self._cookies)

    async def add_cookies(self, cookies: List[Dict[str, Any]]) -> None:
        self.added.extend(cookies)


class MockPage:
    """Page keyed by exact selector strings.

    ``calls`` records every page-level method invoked, so tests can assert a
    step never touched the page.
    """

    def __init__(
        self,
        elements: Optional[Dict[str, List[MockElement]]] = None,
        scripts: Optional[Dict[str, Any]] = None,
        redirects: Optional[Dict[str, str]] = None,
        url: str = "about:blank",
        context: Optional[MockContext] = None,
        goto_error: Optional[Exception] = None,
    ):
        self.elements = elements or {}
        self.scripts = scripts or {}
        self.redirects = redirects or {}
        self.url = url
        self.context = context or MockContext()
        self.goto_error = goto_error
        self.calls: List[str] = []
        self.evaluated: List[tuple] = []
        self.screenshots: List[str] = []

    def add(self, selector: str, *elements: MockElement) -> None:
        self.elements.setdefault(selector, []).extend(elements)

    def remove(self, selector: str) -> None:
        for element in self.elements.pop(selector, []):
            element.detached = True

    def detach(self, element: MockElement) -> None:
        for matches in self.elements.values():
            if element in matches:
                matches.remove(element)
        element.detached = True

    async def goto(self, url: str, **kwargs) -> None:
        self.calls.append("goto")
        if self.goto_error:
            raise self.goto_error
        self.url = self.redirects.get(url, url)

    async def reload(self, **kwargs) -> None:
        self.calls.append("reload")

    async def wait_for_load_state(self, state: str = "load", **kwargs) -> None:
        self.calls.append("wait_for_load_state")

    async def wait_for_selector(self, selector: str, state: str = "visible", **kwargs) -> Optional[MockElement]:
        self.calls.append("wait_for_selector")
        for element in self.elements.get(selector, []):
            if element.visible or state != "visible":
                return element
        raise PlaywrightTimeoutError(f"Timeout waiting for {selector}")

    async def query_selector(self, selector: str) -> Optional[MockElement]:
        self.calls.append("query_selector")
        matches = self.elements.get(selector, [])
        return matches[0] if matches else None

    async def query_selector_all(self, selector: str) -> List[MockElement]:
        self.calls.append("query_selector_all")
        return list(self.elements.get(selector, []))

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        self.calls.append("evaluate")
        self.evaluated.append((expression, arg))
        return self.scripts.get(expression)

    async def screenshot(self, path: str, **kwargs) -> bytes:
        self.calls.append("screenshot")
        Path(path).write_bytes(b"png")
        self.screenshots.append(path)
        return b"png"


class MockResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, text: Optional[str] = None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else ""

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._payload


class MockHttp:
    """Synchronous session double; responses are served in order and the last one repeats."""

    def __init__(self, get_responses: Optional[List[MockResponse]] = None, post_responses: Optional[List[MockResponse]] = None):
        self.get_responses = get_responses or [MockResponse(payload={"success": False, "error": "No code found"})]
        self.post_responses = post_responses or [MockResponse(payload={"success": True})]
        self.get_calls: List[Dict[str, Any]] = []
        self.post_calls: List[Dict[str, Any]] = []

    @staticmethod
    def _next(responses: List[MockResponse], calls: List[Dict[str, Any]]) -> MockResponse:
        return responses[min(len(calls) - 1, len(responses) - 1)]

    def get(self, url: str, **kwargs) -> MockResponse:
        self.get_calls.append({"url": url, **kwargs})
        return self._next(self.get_responses, self.get_calls)

    def post(self, url: str, **kwargs) -> MockResponse:
        self.post_calls.append({"url": url, **kwargs})
        return self._next(self.post_responses, self.post_calls)


class MockClock:
    """Monotonic clock advanced only by the injected sleep."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class RecordingSink:
    def __init__(self):
        self.events: List[NotificationEvent] = []

    async def notify(self, event: NotificationEvent) -> None:
        self.events.append(event)

    @property
    def types(self) -> List[EventType]:
        return [event.type for event in self.events]

    def of_type(self, event_type: EventType) -> List[NotificationEvent]:
        return [event for event in self.events if event.type == event_type]
