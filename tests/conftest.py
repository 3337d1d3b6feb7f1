import pytest
import requests

from settings import QuizSettings
from wiki_client import WikiError

JPG = "https://upload.wikimedia.org/wikipedia/commons/thumb/1/1e/{name}.jpg/600px-{name}.jpg"


def jpg(name):
    return JPG.format(name=name)


class FakeClient:
    """
    In-memory stand-in for WikiClient. Values that are exceptions are raised.
    """

    def __init__(
        self,
        thumbnails=None,
        html=None,
        images=None,
        image_urls=None,
        extracts=None,
        categories=None,
        probes=None,
        default_probe=(200, "image/jpeg"),
    ):
        self.thumbnails = thumbnails or {}
        self.html = html or {}
        self.images = images or {}
        self.image_urls = image_urls or {}
        self.extracts = extracts or {}
        self.categories = categories or {}
        self.probes = probes or {}
        self.default_probe = default_probe
        self.calls = []

    @staticmethod
    def _value(v):
        if isinstance(v, Exception):
            raise v
        return v

    def page_thumbnail(self, title, size=600):
        self.calls.append(("thumbnail", title))
        return self._value(self.thumbnails.get(title))

    def page_html(self, title):
        self.calls.append(("html", title))
        if title not in self.html:
            raise WikiError(f"no page {title}")
        return self._value(self.html[title])

    def page_images(self, title, limit=50):
        self.calls.append(("images", title))
        return self._value(self.images.get(title, []))[:limit]

    def image_url(self, file_title):
        self.calls.append(("imageinfo", file_title))
        return self._value(self.image_urls.get(file_title))

    def intro_extract(self, title):
        self.calls.append(("extract", title))
        return self._value(self.extracts.get(title))

    def category_members(self, category, limit=50):
        self.calls.append(("category", category))
        if "*" in self.categories:
            return self._value(self.categories["*"])[:limit]
        return self._value(self.categories.get(category, []))[:limit]

    def probe(self, url, timeout):
        self.calls.append(("probe", url))
        v = self.probes.get(url, self.default_probe)
        if callable(v):
            v = v()
        return self._value(v)

    def count(self, kind, arg=None):
        return sum(1 for k, a in self.calls if k == kind and (arg is None or a == arg))


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text="", headers=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text
        self.headers = headers or {}

    def json(self):
        if self._payload is None:
            raise ValueError("not json")
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class FakeSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.headers = {}
        self.requests = []

    def get(self, url, params=None, timeout=None, stream=False):
        self.requests.append((url, params, timeout, stream))
        r = self.responses.pop(0)
        if isinstance(r, Exception):
            raise r
        return r


@pytest.fixture
def settings():
    return QuizSettings(
        cache_size=5,
        refill_threshold=2,
        critical_low=2,
        retry_delay_s=3600.0,
        curated_names=("볼프강 아마데우스 모차르트", "루트비히 판 베토벤", "파블로 피카소"),
        curated_sample=3,
        stability_pause_s=0.0,
    )
