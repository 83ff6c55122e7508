import os

from pydantic import BaseModel

from vertexa.errors import ConfigurationError

DEFAULT_REGION = "us-east5"


class VertexConfig(BaseModel):
    """Where and how to reach Claude on Vertex AI.

    Any value left unset is read from the environment:

    - ``project``: ``VERTEX_PROJECT``, then ``GOOGLE_CLOUD_PROJECT``
    - ``region``: ``VERTEX_REGION`` (default ``us-east5``)
    - ``access_token``: ``VERTEX_ACCESS_TOKEN``

    The access token is only a fallback; providers normally receive a
    ``token_provider`` callable that fetches a fresh token per request.
    """

    project: str | None = None
    region: str | None = None
    access_token: str | None = None
    timeout: float = 600.0

    def model_post_init(self, __context) -> None:
        if not self.project:
            self.project = os.getenv("VERTEX_PROJECT") or os.getenv("GOOGLE_CLOUD_PROJECT")
        if not self.region:
            self.region = os.getenv("VERTEX_REGION") or DEFAULT_REGION
        if not self.access_token:
            self.access_token = os.getenv("VERTEX_ACCESS_TOKEN")

    @property
    def base_url(self) -> str:
        return f"https://{self.region}-aiplatform.googleapis.com"

    def endpoint(self, model_id: str) -> str:
        if not self.project:
            raise ConfigurationError(
                "No Google Cloud project configured. Pass project= or set "
                "VERTEX_PROJECT / GOOGLE_CLOUD_PROJECT."
            )
        return (
            f"{self.base_url}/v1/projects/{self.project}/locations/{self.region}"
            f"/publishers/anthropic/models/{model_id}:streamRawPredict"
        )
