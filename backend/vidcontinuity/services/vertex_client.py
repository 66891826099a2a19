"""google-genai clients in Vertex AI mode, one per location.

Only used when a gemini-* model is configured for extraction or correction.
Credentials come from Application Default Credentials; a .env file may set
GOOGLE_APPLICATION_CREDENTIALS.
"""

import os

from dotenv import load_dotenv
from google import genai

from vidcontinuity.config import settings

load_dotenv()

_clients: dict[str, genai.Client] = {}

# Preview models only served from the global endpoint
GLOBAL_REGION_MODELS = {
    "gemini-3-flash-preview",
    "gemini-3-pro-preview",
}


def location_for_model(model_id: str) -> str:
    """Vertex AI location that serves model_id."""
    if model_id in GLOBAL_REGION_MODELS:
        return "global"
    return settings.google_cloud.location


def get_vertex_client(location: str | None = None) -> genai.Client:
    """Return the cached client for a location, creating it on first use.

    Raises:
        RuntimeError: If google_cloud.project_id is not configured.
    """
    project_id = settings.google_cloud.project_id
    if not project_id:
        raise RuntimeError(
            "google_cloud.project_id is not set. Configure it in config.yaml "
            "or via VIDCONTINUITY_GOOGLE_CLOUD__PROJECT_ID."
        )

    loc = location or settings.google_cloud.location
    if loc not in _clients:
        os.environ["GOOGLE_GENAI_USE_VERTEXAI"] = "true"
        os.environ["GOOGLE_CLOUD_PROJECT"] = project_id
        _clients[loc] = genai.Client(vertexai=True, project=project_id, location=loc)

    return _clients[loc]
