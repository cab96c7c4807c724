"""
Language-model classifier backed by an OpenAI-compatible chat completions API.

Each user brings their own API key, stored in the credential store, so the
key is sent per request rather than configured globally.
"""

import json

import httpx

from inbox_agent.config import settings
from inbox_agent.core.database import Database
from inbox_agent.core.exceptions import ClassificationError, ConfigurationError
from inbox_agent.core.logging import get_logger
from inbox_agent.core.models import ClassificationResult, UserCredentials
from inbox_agent.classifiers.base import BaseClassifier
from inbox_agent.classifiers.prompts import triage as triage_prompts

log = get_logger(__name__)

MAX_BODY_CHARS = 3000


class LLMClassifier(BaseClassifier):
    """Chat-completions classifier using per-user API keys."""

    def __init__(
        self,
        store: Database | None = None,
        base_url: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
    ):
        self.store = store or Database()
        self.base_url = (base_url or settings.classifier_base_url).rstrip("/")
        self.model = model or settings.classifier_model
        self.timeout = timeout or settings.classifier_timeout_seconds
        self._client = httpx.Client(timeout=self.timeout)

    def classify(self, user_id: str, body: str) -> ClassificationResult:
        """
        Classify an email body as reply, star or ignore.

        Raises:
            ConfigurationError: If the user has no classifier API key.
            ClassificationError: If the model output has no usable action.
            RuntimeError: If the classifier service cannot be reached.
        """
        credentials = self._credentials(user_id)
        content = self._complete(
            credentials.classifier_api_key,
            system=triage_prompts.CLASSIFY_SYSTEM,
            prompt=triage_prompts.CLASSIFY_PROMPT.format(body=body[:MAX_BODY_CHARS]),
            json_mode=True,
        )

        result = ClassificationResult.from_dict(self._parse_response(content))
        log.info(
            "email_classified",
            user_id=user_id,
            action=result.action.value,
            confidence=result.confidence,
        )
        return result

    def draft_reply(self, user_id: str, body: str, from_email: str) -> str:
        """Draft a reply body in the user's voice."""
        credentials = self._credentials(user_id)
        prompt = triage_prompts.REPLY_PROMPT.format(
            from_email=from_email,
            body=body[:MAX_BODY_CHARS],
            personal_description=credentials.personal_description or settings.default_personal_description,
            resume_link=credentials.resume_link or "",
        )

        content = self._complete(
            credentials.classifier_api_key,
            system=triage_prompts.REPLY_SYSTEM,
            prompt=prompt,
        )
        if not content.strip():
            log.warning("reply_draft_empty", user_id=user_id)
            return settings.fallback_reply_text
        return content.strip()

    def _credentials(self, user_id: str) -> UserCredentials:
        credentials = self.store.get_credentials(user_id)
        if not credentials or not credentials.classifier_api_key:
            raise ConfigurationError("Classifier API key not configured")
        return credentials

    def _complete(self, api_key: str, system: str, prompt: str, json_mode: bool = False) -> str:
        """Run one chat completion and return the message content."""
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        try:
            response = self._client.post(
                f"{self.base_url}/chat/completions",
                json=payload,
                headers={"Authorization": f"Bearer {api_key}"},
            )
            response.raise_for_status()
            data = response.json()

        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            log.error("classifier_http_error", status=status, error=str(e))
            if status in (401, 403):
                raise ConfigurationError(f"Classifier auth error: {e}")
            raise RuntimeError(f"Classifier service error: {e}")

        except httpx.RequestError as e:
            log.error("classifier_request_error", error=str(e))
            raise RuntimeError(f"Failed to reach classifier service: {e}")

        try:
            return data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as e:
            raise RuntimeError(f"Unexpected response format from classifier: {e}")

    def _parse_response(self, response_text: str) -> dict:
        """Parse JSON from the model response."""
        text = response_text.strip()

        # Remove markdown code blocks if present
        if text.startswith("```"):
            lines = text.split("\n")
            lines = lines[1:]
            if lines and lines[-1].strip() == "```":
                lines = lines[:-1]
            text = "\n".join(lines)

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            log.error("classifier_parse_error", error=str(e), response=text[:500])
            raise ClassificationError(f"Classifier returned invalid JSON: {e}")

        if not isinstance(data, dict):
            raise ClassificationError(f"Classifier returned non-object JSON: {text[:200]!r}")
        return data

    def close(self):
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
