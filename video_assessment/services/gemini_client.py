"""Thin wrapper around the Gemini ``generateContent`` REST endpoint.

We call the HTTP API directly with ``requests`` rather than through an SDK,
sending the video by URI next to the prompt. The client never retries: a
timeout or a remote error becomes a ModelInvocationError and the retry
decision belongs to the evaluation job.
"""

import traceback
from typing import Any, Dict, Optional

import requests

from ..errors import ModelInvocationError


class ModelResponse:
    def __init__(self, text: Optional[str], status_code: int = 200,
                 prompt_tokens: Optional[int] = None, response_tokens: Optional[int] = None):
        self.text = text
        self.status_code = status_code
        self.prompt_tokens = prompt_tokens
        self.response_tokens = response_tokens


def extract_text(jr: Dict[str, Any]) -> Optional[str]:
    """Join the text parts of the first candidate, or None if there are none."""
    try:
        parts = jr.get('candidates', [])[0].get('content', {}).get('parts', [])
    except (IndexError, AttributeError):
        return None
    texts = [p['text'] for p in parts if isinstance(p, dict) and isinstance(p.get('text'), str)]
    return ''.join(texts) if texts else None


class GeminiVideoClient:
    def __init__(self, api_key: Optional[str], model: str, timeout: float = 300.0,
                 base_url: str = 'https://generativelanguage.googleapis.com/v1beta',
                 mime_type: str = 'video/mp4', session: Optional[requests.Session] = None):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.base_url = base_url.rstrip('/')
        self.mime_type = mime_type
        self.http = session or requests

    @classmethod
    def from_config(cls, config) -> 'GeminiVideoClient':
        return cls(api_key=config.get('GEMINI_API_KEY'),
                   model=config.get('GEMINI_MODEL', 'gemini-3-pro-preview'),
                   timeout=float(config.get('MODEL_TIMEOUT_SEC', 300)),
                   base_url=config.get('GEMINI_BASE_URL') or 'https://generativelanguage.googleapis.com/v1beta',
                   mime_type=config.get('VIDEO_MIME_TYPE', 'video/mp4'))

    def _body(self, video_url: str, prompt: str) -> Dict[str, Any]:
        return {
            'contents': [{
                'role': 'user',
                'parts': [
                    {'file_data': {'file_uri': video_url, 'mime_type': self.mime_type}},
                    {'text': prompt},
                ],
            }],
            'generationConfig': {'temperature': 0.2, 'responseMimeType': 'application/json'},
        }

    def _post(self, video_url: str, prompt: str) -> ModelResponse:
        if not self.api_key:
            raise ModelInvocationError('GEMINI_API_KEY is not configured')

        url = f'{self.base_url}/models/{self.model}:generateContent'
        headers = {'x-goog-api-key': self.api_key, 'Content-Type': 'application/json'}
        try:
            r = self.http.post(url, headers=headers, json=self._body(video_url, prompt), timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise ModelInvocationError(f'Model call timed out after {self.timeout}s') from e
        except requests.exceptions.RequestException as e:
            raise ModelInvocationError(f'Model call failed: {e}') from e

        if r.status_code >= 400:
            body = (r.text or '')[:1000]
            raise ModelInvocationError(f'Model call returned HTTP {r.status_code}: {body}',
                                       status_code=r.status_code)
        try:
            jr = r.json()
        except ValueError as e:
            raise ModelInvocationError('Model call returned a non-JSON body', status_code=r.status_code) from e

        usage = jr.get('usageMetadata') or {}
        return ModelResponse(text=extract_text(jr),
                             status_code=r.status_code,
                             prompt_tokens=usage.get('promptTokenCount'),
                             response_tokens=usage.get('candidatesTokenCount'))

    def generate(self, video_url: str, prompt: str, tracker=None) -> ModelResponse:
        """Submit the video and prompt; resolve ``tracker`` with the outcome."""
        try:
            resp = self._post(video_url, prompt)
        except Exception as e:
            if tracker is not None:
                tracker.fail(e, stack_trace=traceback.format_exc())
            raise
        if tracker is not None:
            tracker.complete(response_text=resp.text, status_code=resp.status_code,
                             prompt_tokens=resp.prompt_tokens, response_tokens=resp.response_tokens)
        return resp
