class SkuMatchError(Exception):
    """Base class for failures raised by the matcher's upstream adapters."""


class CatalogUnavailableError(SkuMatchError):
    def __init__(self, reason: str = ""):
        super().__init__(f"Service catalog unavailable: {reason}")


class EmbeddingError(SkuMatchError):
    def __init__(self, reason: str = ""):
        super().__init__(f"Embedding generation failed: {reason}")


class VectorSearchError(SkuMatchError):
    def __init__(self, reason: str = ""):
        super().__init__(f"Native vector search failed: {reason}")


class LLMResponseError(SkuMatchError):
    def __init__(self, reason: str = ""):
        super().__init__(f"LLM call failed: {reason}")


class MalformedModelOutputError(LLMResponseError):
    def __init__(self, raw: str, reason: str = ""):
        self.raw = raw
        SkuMatchError.__init__(self, f"LLM returned malformed output ({reason}): {raw[:200]!r}")
