"""Step executor: one handler per step command.

Handlers never raise past :meth:`StepExecutor.execute`. Third-party pages are
unreliable, so a failing step degrades to an empty value and the recipe
carries on; diagnostics go to the log.
"""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable
from typing import Any
from urllib.parse import quote, urlparse

import httpx
import structlog

from ..browser import PageController
from ..config import EngineSettings
from ..exceptions import MissingStepFieldError, StepFailure
from ..observability import get_logger
from .jsonpath import extract_path
from .models import Command, LoopConfig, Step, StepConfig
from .variables import ValueKind, VariableStore

Handler = Callable[[Step], Awaitable[Any]]

# Value shape each command writes to its output variable
OUTPUT_KINDS: dict[Command, ValueKind | None] = {
    Command.LOAD: None,
    Command.STORE_ATTRIBUTE: ValueKind.TEXT,
    Command.STORE_TEXT: ValueKind.TEXT,
    Command.STORE_ARRAY: ValueKind.LIST,
    Command.STORE_COUNT: ValueKind.TEXT,
    Command.REGEX: ValueKind.TEXT,
    Command.STORE: ValueKind.TEXT,
    Command.API_REQUEST: ValueKind.JSON,
    Command.JSON_STORE_TEXT: ValueKind.JSON,
    Command.URL_ENCODE: ValueKind.TEXT,
    Command.STORE_URL: ValueKind.TEXT,
    Command.REPLACE: ValueKind.TEXT,
}

# Recipes escape these characters inside regex inputs
_ESCAPED_INPUT_CHARS = re.compile(r"\\([\\/?!])")
# JavaScript named groups (?<name>...) but not lookbehinds (?<= / (?<!
_JS_NAMED_GROUP = re.compile(r"\(\?<(?![=!])")
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")

# Characters encodeURIComponent leaves untouched
_URI_COMPONENT_SAFE = "-_.!~*'()"

ERROR_BODY_EXCERPT = 500


class StepExecutor:
    """Runs single recipe steps against a page controller and a variable store.

    Args:
        page: Page navigation and DOM querying capability
        variables: Store shared by all steps of the execution
        settings: Interpreter defaults (navigation timeouts)
        http_client: Client for ``api_request`` steps; a short-lived client
            is opened per request when omitted
        logger: Logger for step diagnostics
    """

    def __init__(
        self,
        page: PageController,
        variables: VariableStore,
        settings: EngineSettings | None = None,
        http_client: httpx.AsyncClient | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ):
        self.page = page
        self.variables = variables
        self.settings = settings or EngineSettings()
        self.http_client = http_client
        self.log = logger or get_logger(__name__)

    def handler_for(self, command: Command | None) -> Handler | None:
        match command:
            case Command.LOAD:
                return self.execute_load
            case Command.STORE_ATTRIBUTE:
                return self.execute_store_attribute
            case Command.STORE_TEXT:
                return self.execute_store_text
            case Command.STORE_ARRAY:
                return self.execute_store_array
            case Command.STORE_COUNT:
                return self.execute_store_count
            case Command.REGEX:
                return self.execute_regex
            case Command.STORE:
                return self.execute_store
            case Command.API_REQUEST:
                return self.execute_api_request
            case Command.JSON_STORE_TEXT:
                return self.execute_json_store_text
            case Command.URL_ENCODE:
                return self.execute_url_encode
            case Command.STORE_URL:
                return self.execute_store_url
            case Command.REPLACE:
                return self.execute_replace
            case _:
                return None

    async def execute(self, step: Step) -> None:
        """Run a step once, or once per loop index, and store its output."""
        command = step.kind
        handler = self.handler_for(command)
        if handler is None:
            self.log.error("unknown_command", failure=StepFailure.UNKNOWN_COMMAND.value, command=step.command)
            return

        self.log.debug(
            "step_started",
            command=command.value,
            description=step.description,
            output=step.output_name,
        )

        loop = step.loop
        if loop is None:
            value = await self._run_handler(command, handler, step)
            self._store_output(command, step.output_name, value)
            return

        bounds = self._loop_bounds(loop)
        if bounds is None:
            return
        start, stop, stride = bounds
        self.log.debug("loop_started", index=loop.index, start=start, stop=stop, stride=stride)
        for index in range(start, stop + 1, stride):
            self.variables.set(loop.index, index)
            output_key = self.variables.replace_variables_in_string(step.output_name)
            value = await self._run_handler(command, handler, step)
            self._store_output(command, output_key, value)

    async def _run_handler(self, command: Command, handler: Handler, step: Step) -> Any:
        try:
            return await handler(step)
        except MissingStepFieldError as e:
            self.log.error(
                "missing_required_field",
                failure=StepFailure.MISSING_REQUIRED_FIELD.value,
                command=e.command,
                fields=list(e.fields),
            )
            return ""
        except Exception as e:
            self.log.error("step_failed", command=command.value, error=str(e), error_type=type(e).__name__)
            return ""

    def _store_output(self, command: Command, key: str | None, value: Any) -> None:
        if not key:
            self.log.debug("step_without_output", command=command.value)
            return
        if command is Command.STORE_ARRAY:
            if value != "":
                self.variables.push(key, value)
                self.log.debug("variable_pushed", key=key, value=_preview(value))
            return
        self.variables.set(key, value)
        self.log.debug("variable_stored", key=key, kind=OUTPUT_KINDS[command], value=_preview(value))

    def _loop_bounds(self, loop: LoopConfig) -> tuple[int, int, int] | None:
        start = self._parse_bound(loop.from_)
        stop = self._parse_bound(loop.to)
        stride = self._parse_bound(loop.step)
        if start is None or stop is None or stride is None or stride <= 0:
            self.log.error("invalid_loop", index=loop.index, start=loop.from_, stop=loop.to, stride=loop.step)
            return None
        return start, stop, stride

    def _parse_bound(self, value: int | str) -> int | None:
        if isinstance(value, int):
            return value
        match = _LEADING_INT.match(self.variables.replace_variables_in_string(value))
        return int(match.group(1)) if match else None

    def _resolve(self, template: str) -> str:
        return self.variables.replace_variables_in_string(template)

    @staticmethod
    def _require(step: Step, *fields: str) -> None:
        missing = tuple(name for name in fields if not getattr(step, name))
        if missing:
            raise MissingStepFieldError(step.command, missing)

    # --- Handlers ---

    async def execute_load(self, step: Step) -> None:
        self._require(step, "url")
        url = self._resolve(step.url)
        config = step.config or StepConfig()

        if config.headers:
            headers = {self._resolve(k): self._resolve(v) for k, v in config.headers.items()}
            await self.page.set_extra_http_headers(headers)
            cookie = headers.get("Cookie")
            if cookie:
                name, _, value = cookie.partition("=")
                await self.page.set_cookies([{"name": name, "value": value, "domain": urlparse(url).hostname or ""}])

        wait_until = "networkidle" if config.js else "domcontentloaded"
        timeout = self.settings.load_timeout(config.timeout)
        await self.page.load_page(url, wait_until=wait_until, timeout=timeout)
        self.log.debug("page_loaded", url=url, wait_until=wait_until, timeout=timeout)
        return None

    async def execute_store_attribute(self, step: Step) -> str:
        self._require(step, "locator", "attribute_name")
        locator = self._resolve(step.locator)
        element = await self.page.query_selector(locator)
        if element is None:
            self.log.debug("element_not_found", command=step.command, locator=locator)
            return ""
        value = await element.get_attribute(step.attribute_name)
        return value if value is not None else ""

    async def execute_store_text(self, step: Step) -> str:
        self._require(step, "locator")
        locator = self._resolve(step.locator)
        element = await self.page.query_selector(locator)
        if element is None:
            self.log.debug("element_not_found", command=step.command, locator=locator)
            return ""
        return (await element.text_content()).strip()

    async def execute_store_array(self, step: Step) -> str:
        # Reads one element per call; loops supply the iteration
        return await self.execute_store_text(step)

    async def execute_store_count(self, step: Step) -> str:
        self._require(step, "locator")
        locator = self._resolve(step.locator)
        return str(await self.page.count_elements(locator))

    async def execute_regex(self, step: Step) -> str:
        self._require(step, "input", "expression")
        text = _ESCAPED_INPUT_CHARS.sub(r"\1", self._resolve(step.input))

        try:
            pattern = re.compile(_JS_NAMED_GROUP.sub("(?P<", step.expression), re.DOTALL)
        except re.error as e:
            self.log.error("invalid_regex", expression=step.expression, error=str(e))
            return text

        match = pattern.search(text)
        if match is None:
            self.log.debug(
                "regex_no_match",
                failure=StepFailure.REGEX_NO_MATCH.value,
                expression=step.expression,
                input=_preview(text),
            )
            return text

        group = next((g for g in match.groups() if g is not None), None)
        return (group or match.group(0)).strip()

    async def execute_store(self, step: Step) -> str:
        self._require(step, "input")
        return self._resolve(step.input)

    async def execute_api_request(self, step: Step) -> Any:
        self._require(step, "url", "config")
        url = self._resolve(step.url)
        method = (step.config.method or "GET").upper()
        headers = dict(step.config.headers or {})
        body = self._resolve(step.config.body) if step.config.body else None

        self.log.debug("api_request", method=method, url=url)
        try:
            response = await self._send_request(method, url, headers, body)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            self.log.error("api_request_failed", failure=StepFailure.API_REQUEST_FAILURE.value, url=url, error=str(e))
            return {}

        if not response.is_success:
            self.log.error(
                "api_request_failed",
                failure=StepFailure.API_REQUEST_FAILURE.value,
                url=url,
                status=response.status_code,
                reason=response.reason_phrase,
                body=response.text[:ERROR_BODY_EXCERPT],
            )
            return {}

        try:
            data = response.json()
        except ValueError as e:
            self.log.error(
                "api_request_failed",
                failure=StepFailure.API_REQUEST_FAILURE.value,
                url=url,
                status=response.status_code,
                error=f"Invalid JSON: {e}",
                body=response.text[:ERROR_BODY_EXCERPT],
            )
            return {}

        self.log.debug("api_response", url=url, status=response.status_code, size=len(response.content))
        return data

    async def _send_request(self, method: str, url: str, headers: dict[str, str], body: str | None) -> httpx.Response:
        if self.http_client is not None:
            return await self.http_client.request(method, url, headers=headers, content=body)
        async with httpx.AsyncClient(follow_redirects=True) as client:
            return await client.request(method, url, headers=headers, content=body)

    async def execute_json_store_text(self, step: Step) -> Any:
        self._require(step, "input", "locator")
        data = self.variables.get(step.input)
        locator = self._resolve(step.locator)
        value = extract_path(data, locator)
        self.log.debug("json_extracted", source=step.input, locator=locator, value=_preview(value))
        return value

    async def execute_url_encode(self, step: Step) -> str:
        self._require(step, "input")
        return quote(step.input, safe=_URI_COMPONENT_SAFE)

    async def execute_store_url(self, step: Step) -> str:
        return await self.page.url()

    async def execute_replace(self, step: Step) -> str:
        self._require(step, "input", "find")
        if step.replace is None:
            raise MissingStepFieldError(step.command, ("replace",))
        return self._resolve(step.input).replace(step.find, step.replace)


def _preview(value: Any, limit: int = 200) -> str:
    text = value if isinstance(value, str) else repr(value)
    return text if len(text) <= limit else f"{text[:limit]}..."
