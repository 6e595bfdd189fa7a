"""
Execution of compiled templates with Jinja2.
"""
import hashlib
import logging
import re
import threading
import time
from collections import OrderedDict
from typing import Any, Dict, Mapping, Optional

from jinja2 import Environment, StrictUndefined, Template, TemplateSyntaxError, UndefinedError

from ..error.exceptions import CompileError, RenderError, RenderingError
from .context import RenderContext

logger = logging.getLogger(__name__)


class MemoryCache:
    """
    Least recently used cache of parsed templates with optional expiry.
    """

    def __init__(self, max_size: int = 128, ttl: Optional[float] = None):
        """
        Initialize the cache.

        Args:
            max_size: Maximum number of entries
            ttl: Seconds an unused entry stays valid, None for no expiry
        """
        # Ordered from least to most recently used
        self.cache: "OrderedDict[str, Any]" = OrderedDict()
        self.access_times: Dict[str, float] = {}
        self.max_size = max_size
        self.ttl = ttl
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            if key not in self.cache:
                return None

            current_time = time.monotonic()
            if self.ttl is not None and current_time - self.access_times[key] > self.ttl:
                del self.cache[key]
                del self.access_times[key]
                return None

            self.access_times[key] = current_time
            self.cache.move_to_end(key)
            return self.cache[key]

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            if len(self.cache) >= self.max_size and key not in self.cache:
                lru_key, _ = self.cache.popitem(last=False)
                del self.access_times[lru_key]

            self.cache[key] = value
            self.cache.move_to_end(key)
            self.access_times[key] = time.monotonic()

    def invalidate(self, pattern: Optional[str] = None) -> int:
        """
        Drop entries whose key matches ``pattern``, or every entry.

        Returns:
            Number of entries removed
        """
        with self._lock:
            if pattern:
                regex = re.compile(pattern)
                keys = [key for key in self.cache if regex.search(key)]
            else:
                keys = list(self.cache)
            for key in keys:
                del self.cache[key]
                del self.access_times[key]
        logger.debug(f"Invalidated {len(keys)} parsed template(s)")
        return len(keys)

    def __len__(self) -> int:
        return len(self.cache)


class TemplateEngine:
    """
    Parses and executes compiled template text.

    Output is autoescaped; referencing an undefined variable is an error
    unless the template supplies a fallback.
    """

    def __init__(self, memory_cache_size: int = 128):
        self.env = self._create_environment()
        self.templates = MemoryCache(max_size=memory_cache_size)

    def _create_environment(self) -> Environment:
        """
        Create the Jinja2 environment; templates use its builtin filters.

        Returns:
            Configured Jinja2 environment
        """
        return Environment(
            extensions=['jinja2.ext.loopcontrols'],
            autoescape=True,
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )

    def check_syntax(self, compiled_text: str) -> None:
        """
        Validate compiled text without executing it.

        Raises:
            CompileError: If the compiled text is not a valid template
        """
        try:
            self.env.parse(compiled_text)
        except TemplateSyntaxError as e:
            raise CompileError(f"Invalid template expression on line {e.lineno}: {e.message}", line=e.lineno)

    def execute(
        self,
        compiled_text: str,
        context: RenderContext,
        extra: Optional[Mapping[str, Any]] = None
    ) -> str:
        """
        Render compiled text against a context.

        Args:
            compiled_text: Output of the parsing service
            context: Variables for this execution
            extra: Additional variables placed over the context

        Returns:
            Rendered text

        Raises:
            RenderError: If an expression fails to evaluate
        """
        template = self._load(compiled_text, context.template)
        variables = context.to_dict()
        if extra:
            variables.update(extra)

        try:
            return template.render(variables)
        except RenderingError:
            raise
        except UndefinedError as e:
            raise RenderError(
                f"Undefined variable in template '{context.template}': {e.message}",
                template=context.template,
            ) from e
        except Exception as e:
            raise RenderError(
                f"Error rendering template '{context.template}': {type(e).__name__}: {e}",
                template=context.template,
            ) from e

    def clear(self) -> int:
        return self.templates.invalidate()

    def _load(self, compiled_text: str, name: Optional[str]) -> Template:
        key = hashlib.sha256(compiled_text.encode("utf-8")).hexdigest()
        template = self.templates.get(key)
        if template is None:
            try:
                template = self.env.from_string(compiled_text)
            except TemplateSyntaxError as e:
                raise CompileError(
                    f"Invalid template expression on line {e.lineno}: {e.message}",
                    line=e.lineno,
                    template=name,
                )
            self.templates.set(key, template)
        return template
