from __future__ import annotations
import json
import re
import httpx
from typing import Any, Dict, List, Optional
from .errors import MissingCredentialError
from .settings import settings

_FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


def extract_json(text: str) -> Any:
	"""Parse a model reply as JSON, tolerating code fences and surrounding prose."""
	text = (text or "").strip()
	try:
		return json.loads(text)
	except ValueError:
		pass
	code_block = _FENCED_JSON.search(text)
	if code_block:
		try:
			return json.loads(code_block.group(1))
		except ValueError:
			pass
	# Outermost array or object, whichever opens first
	starts = [i for i in (text.find("["), text.find("{")) if i != -1]
	if starts:
		first = min(starts)
		closer = "]" if text[first] == "[" else "}"
		last = text.rfind(closer)
		if last > first:
			return json.loads(text[first : last + 1])
	raise ValueError(f"Model reply is not JSON: {text[:200]!r}")


class GeminiClient:
	def __init__(
		self,
		api_key: Optional[str] = None,
		*,
		base_url: Optional[str] = None,
		model: Optional[str] = None,
		image_model: Optional[str] = None,
		timeout: Optional[float] = None,
		transport: Optional[httpx.AsyncBaseTransport] = None,
	) -> None:
		self.api_key = api_key or settings.gemini_api_key
		if not self.api_key:
			raise MissingCredentialError("GEMINI_API_KEY is not configured")
		self.model = model or settings.gemini_model
		self.image_model = image_model or settings.gemini_image_model
		self.provider = settings.gemini_provider
		if self.provider == "vertex":
			region = settings.vertex_region
			project = settings.vertex_project or "placeholder-project"
			# Vertex AI Generative REST endpoint (API key via header)
			self.base_url = base_url or (
				f"https://{region}-aiplatform.googleapis.com/v1/projects/{project}/locations/{region}/publishers/google/models"
			)
			self._auth_in_query = False
		else:
			# Google AI Studio (Generative Language API)
			self.base_url = base_url or "https://generativelanguage.googleapis.com/v1beta/models"
			self._auth_in_query = True
		if timeout is None:
			timeout = settings.gemini_timeout_seconds
		self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

	def _url(self, model: str, method: str) -> str:
		return f"{self.base_url.rstrip('/')}/{model}:{method}"

	async def generate(self, prompt: str, *, response_schema: Optional[Dict[str, Any]] = None) -> str:
		payload: Dict[str, Any] = {"contents": [{"parts": [{"text": prompt}]}]}
		if response_schema is not None:
			payload["generationConfig"] = {
				"responseMimeType": "application/json",
				"responseSchema": response_schema,
			}
		data = await self._post(self._url(self.model, "generateContent"), payload)
		try:
			return data["candidates"][0]["content"]["parts"][0]["text"]
		except (KeyError, IndexError, TypeError):
			raise RuntimeError(f"Unexpected Gemini response: {data}")

	async def generate_json(self, prompt: str, response_schema: Dict[str, Any]) -> Any:
		text = await self.generate(prompt, response_schema=response_schema)
		return extract_json(text)

	async def generate_images(
		self,
		prompt: str,
		*,
		number_of_images: int = 1,
		aspect_ratio: str = "16:9",
		mime_type: str = "image/jpeg",
	) -> List[str]:
		"""Return base64-encoded image bytes, one entry per generated image."""
		payload: Dict[str, Any] = {
			"instances": [{"prompt": prompt}],
			"parameters": {
				"sampleCount": number_of_images,
				"aspectRatio": aspect_ratio,
				"outputOptions": {"mimeType": mime_type},
			},
		}
		data = await self._post(self._url(self.image_model, "predict"), payload)
		images = [p["bytesBase64Encoded"] for p in data.get("predictions") or [] if p.get("bytesBase64Encoded")]
		if not images:
			raise RuntimeError(f"Unexpected Imagen response: {data}")
		return images

	async def _post(self, url: str, payload: Dict[str, Any]) -> Dict[str, Any]:
		params: Dict[str, Any] = {}
		headers: Dict[str, str] = {}
		if self._auth_in_query:
			params["key"] = self.api_key
		else:
			headers["x-goog-api-key"] = self.api_key
		r = await self._client.post(url, params=params, headers=headers, json=payload)
		r.raise_for_status()
		return r.json()

	async def aclose(self) -> None:
		await self._client.aclose()

	async def __aenter__(self) -> "GeminiClient":
		return self

	async def __aexit__(self, *exc_info: Any) -> None:
		await self.aclose()
