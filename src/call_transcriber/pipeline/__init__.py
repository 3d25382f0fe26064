"""Stage pipeline executed for each admitted webhook request."""

from .executor import PipelineExecutor, PipelineResult, PipelineState
from .request import ParsedRequest, parse_request

__all__ = ["PipelineExecutor", "PipelineResult", "PipelineState", "ParsedRequest", "parse_request"]
