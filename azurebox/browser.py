# File: azurebox/browser.py
import json
from typing import List, Protocol, runtime_checkable


@runtime_checkable
class BrowserChannel(Protocol):
    """Side channel into the user's browser (anything that can run client script)."""

    def navigate(self, url: str) -> None:
        """Full navigation of the browser to an absolute URL."""
        ...

    def replace_history(self, url: str) -> None:
        """Swap the visible address for ``url`` without reloading."""
        ...


def _js_string(value: str) -> str:
    # JSON-Literal ist gültiges JS; "</" maskieren, damit ein <script>-Block nicht endet
    return json.dumps(value).replace("</", "<\\/")


class ScriptBuffer:
    """
    Collects the scripts for the current render cycle. The host drains the
    buffer and embeds the snippets into the page it returns.
    """

    def __init__(self) -> None:
        self._scripts: List[str] = []

    def run(self, script: str) -> None:
        self._scripts.append(script)

    def navigate(self, url: str) -> None:
        self.run(f"console.log('redirected'); location.replace({_js_string(url)});")

    def replace_history(self, url: str) -> None:
        self.run(
            "window.history.replaceState({}, document.title, "
            f"{_js_string(url)}); console.log('cleaned url');"
        )

    def console_log(self, text: str, value: object = "") -> None:
        message = f"{text} {value}".rstrip()
        self.run(f"console.log({_js_string(message)});")

    def drain(self) -> List[str]:
        scripts, self._scripts = self._scripts, []
        return scripts

    def __len__(self) -> int:
        return len(self._scripts)
