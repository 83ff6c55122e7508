"""Model definitions and token cost accounting.

A :class:`Model` describes one Claude deployment on Vertex AI: the ids used
to address it, its limits, and its per-million-token prices.  Cost is
computed by :func:`calculate_cost` from a :class:`~vertexa.message.Usage`
snapshot; the assembler calls it every time the usage counters change.
"""

from pydantic import BaseModel, Field

from vertexa.message import Cost, Usage

VERTEX_PROVIDER = "vertex-anthropic"
VERTEX_API = "vertex-anthropic-api"


class ModelCost(BaseModel):
    """USD per million tokens."""

    input: float = 0.0
    output: float = 0.0
    cache_read: float = 0.0
    cache_write: float = 0.0


class Model(BaseModel):
    id: str
    name: str = ""
    provider: str = VERTEX_PROVIDER
    api: str = VERTEX_API
    reasoning: bool = False
    input: list[str] = Field(default_factory=lambda: ["text"])
    cost: ModelCost = Field(default_factory=ModelCost)
    context_window: int = 200000
    max_tokens: int = 8192
    # Vertex publishes some models under a different id than the one
    # recorded in the transcript.
    vertex_model_id: str | None = None

    @property
    def endpoint_model_id(self) -> str:
        return self.vertex_model_id or self.id


VERTEX_MODELS: list[Model] = [
    Model(
        id="claude-sonnet-4-5@20250929",
        name="Claude Sonnet 4.5 (Vertex)",
        reasoning=True,
        input=["text", "image"],
        cost=ModelCost(
            input=3.0, output=15.0, cache_read=0.3, cache_write=3.75,
        ),
        context_window=200000,
        max_tokens=64000,
    ),
]


def get_model(model_id: str) -> Model:
    """Look up a built-in Vertex model by id."""
    for model in VERTEX_MODELS:
        if model.id == model_id:
            return model
    known = ", ".join(m.id for m in VERTEX_MODELS)
    raise KeyError(f"Unknown model '{model_id}'. Known models: {known}")


def calculate_cost(model: Model, usage: Usage) -> Cost:
    """Price ``usage`` against ``model`` and store the result on it."""
    rates = model.cost
    cost = usage.cost
    cost.input = rates.input / 1_000_000 * usage.input
    cost.output = rates.output / 1_000_000 * usage.output
    cost.cache_read = rates.cache_read / 1_000_000 * usage.cache_read
    cost.cache_write = rates.cache_write / 1_000_000 * usage.cache_write
    cost.total = cost.input + cost.output + cost.cache_read + cost.cache_write
    return cost
