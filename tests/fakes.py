"""Test doubles shared across the suite."""

from src.models import FetchResult
from src.notify.channels import Channel, ChannelError

ORDER_PAGE_IN = "<html><title>Shopping Cart</title><button>Continue</button></html>"
ORDER_PAGE_OUT = "<html><title>Shopping Cart</title><p>Out of Stock</p></html>"
BLOCK_PAGE = "<html><title>Just a moment...</title>Checking your browser</html>"


class ScriptedFetcher:
    """Fetch capability that replays queued results per URL."""

    def __init__(self, script: dict[str, list[FetchResult]]):
        self.script = {url: list(results) for url, results in script.items()}
        self.calls: list[str] = []

    async def __call__(self, url: str, timeout_ms: int) -> FetchResult:
        self.calls.append(url)
        queue = self.script.get(url) or []
        if not queue:
            return FetchResult(body=None, status_code=0)
        return queue.pop(0)


class FakeChannel(Channel):
    """Channel that records sends and optionally fails."""

    def __init__(self, name: str = "Fake", fail: bool = False):
        super().__init__(client=None)
        self.name = name
        self.fail = fail
        self.sent: list[tuple[str, str]] = []

    async def send(self, title: str, body: str) -> None:
        self.sent.append((title, body))
        if self.fail:
            raise ChannelError(f"{self.name} API error: 500")


async def no_sleep(seconds: float) -> None:
    return None


def page(body):
    return FetchResult(body=body, status_code=200)


def http_status(code):
    return FetchResult(body=None, status_code=code)


