"""进程级可观测句柄。

基于 OpenTelemetry API 创建 tracer，在进程启动时创建一次，再注入到 ChatAgent、McpToolCatalog 等组件。
导出器（OTLP 等）的配置不在本包范围内：未配置 SDK 时所有 span 都是 no-op。
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from opentelemetry import trace
from opentelemetry.trace import Span, SpanKind, Status, StatusCode

INSTRUMENTATION_NAME = "chat_core"


class Telemetry:
    """对 tracer 的薄封装，统一 span 的创建与错误标记。"""

    def __init__(self, tracer_provider: Optional[trace.TracerProvider] = None):
        self._tracer = trace.get_tracer(INSTRUMENTATION_NAME, tracer_provider=tracer_provider)

    @contextmanager
    def span(
        self,
        name: str,
        kind: SpanKind = SpanKind.INTERNAL,
        attributes: Optional[Dict[str, Any]] = None,
    ) -> Iterator[Span]:
        with self._tracer.start_as_current_span(
            name,
            kind=kind,
            attributes=attributes,
            record_exception=False,
            set_status_on_exception=False,
        ) as span:
            yield span

    @staticmethod
    def mark_error(span: Span, message: str) -> None:
        span.set_status(Status(StatusCode.ERROR, message))


_telemetry: Optional[Telemetry] = None


def get_telemetry() -> Telemetry:
    """返回进程内唯一的 Telemetry 实例（首次调用时创建）。"""

    global _telemetry
    if _telemetry is None:
        _telemetry = Telemetry()
    return _telemetry
