# ------------------------------ PAGE CAPABILITY ------------------------------
"""
The subset of the Playwright page API the workflow relies on.

Authenticator, harvester and confirmer only talk to these methods, so a
Playwright ``Page`` satisfies the protocol and tests can substitute a fake.
"""

from typing import Any, Dict, List, Optional, Protocol


class ElementHandle(Protocol):
    async def click(self, **kwargs) -> None: ...
    async def fill(self, value: str) -> None: ...
    async def is_visible(self) -> bool: ...
    async def is_disabled(self) -> bool: ...
    async def inner_text(self) -> str: ...
    async def evaluate(self, expression: str, arg: Any = None) -> Any: ...
    async def query_selector(self, selector: str) -> Optional["ElementHandle"]: ...


class BrowserContext(Protocol):
    async def cookies(self) -> List[Dict[str, Any]]: ...
    async def add_cookies(self, cookies: List[Dict[str, Any]]) -> None: ...


class PageHandle(Protocol):
    @property
    def url(self) -> str: ...

    @property
    def context(self) -> BrowserContext: ...

    async def goto(self, url: str, **kwargs) -> Any: ...
    async def reload(self, **kwargs) -> Any: ...
    async def wait_for_load_state(self, state: str = "load", **kwargs) -> None: ...
    async def wait_for_selector(self, selector: str, **kwargs) -> Optional[ElementHandle]: ...
    async def query_selector(self, selector: str) -> Optional[ElementHandle]: ...
    async def query_selector_all(self, selector: str) -> List[ElementHandle]: ...
    async def evaluate(self, expression: str, arg: Any = None) -> Any: ...
    async def screenshot(self, **kwargs) -> bytes: ...
