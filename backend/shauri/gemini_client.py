from __future__ import annotations
import logging
import httpx
from typing import Any, Dict, List, Optional
from .settings import settings


logger = logging.getLogger(__name__)

FALLBACK_REPLY = "Unable to generate response."


def to_contents(messages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
	"""Map chat-style messages onto Gemini ``contents``.

	Gemini only knows ``user`` and ``model`` turns, so system prompts travel as
	user turns ahead of the conversation. A message may carry extra ``parts``
	(for instance an inline image) which are appended after its text.
	"""
	contents: List[Dict[str, Any]] = []
	for m in messages:
		parts: List[Dict[str, Any]] = [{"text": m.get("content", "")}]
		parts.extend(m.get("parts") or [])
		contents.append({
			"role": "model" if m.get("role") == "assistant" else "user",
			"parts": parts,
		})
	return contents


class GeminiClient:
	def __init__(self, api_key: Optional[str] = None, *, base_url: Optional[str] = None, model: Optional[str] = None) -> None:
		self.api_key = api_key or settings.gemini_api_key
		if not self.api_key:
			raise ValueError("GEMINI_API_KEY is not configured")
		self.model = model or settings.gemini_model
		self.provider = settings.gemini_provider
		if self.provider == "vertex":
			region = settings.vertex_region
			project = settings.vertex_project or "placeholder-project"
			# Vertex AI Generative REST endpoint (API key via header)
			self.base_url = base_url or (
				f"https://{region}-aiplatform.googleapis.com/v1/projects/{project}/locations/{region}/publishers/google/models/{self.model}:generateContent"
			)
			self._auth_in_query = False
		else:
			# Google AI Studio (Generative Language API)
			self.base_url = base_url or f"https://generativelanguage.googleapis.com/v1beta/models/{self.model}:generateContent"
			self._auth_in_query = True
		self._client = httpx.AsyncClient(timeout=60)
		self._fallback_client: Optional[httpx.AsyncClient] = None
		self._fallback_enabled = bool(settings.openrouter_api_key)
		self._openrouter_api_key = settings.openrouter_api_key
		self._openrouter_model = settings.openrouter_model
		self._openrouter_base_url = settings.openrouter_base_url
		self._openrouter_headers = {
			"Authorization": f"Bearer {self._openrouter_api_key}" if self._openrouter_api_key else "",
			"Content-Type": "application/json",
			"HTTP-Referer": settings.openrouter_referer,
			"X-Title": settings.openrouter_title,
		}
		if self._fallback_enabled:
			self._fallback_client = httpx.AsyncClient(timeout=60)

	async def __aenter__(self) -> "GeminiClient":
		return self

	async def __aexit__(self, *exc_info) -> None:
		await self.aclose()

	async def generate(self, prompt: str, *, temperature: Optional[float] = None) -> str:
		return await self.chat([{"role": "user", "content": prompt}], temperature=temperature)

	async def chat(self, messages: List[Dict[str, Any]], *, temperature: Optional[float] = None) -> str:
		payload: Dict[str, Any] = {"contents": to_contents(messages)}
		if temperature is not None:
			payload["generationConfig"] = {"temperature": temperature}
		# Inline images cannot be forwarded to the text-only fallback
		has_media = any(m.get("parts") for m in messages)
		return await self._post_payload(
			payload,
			fallback_messages=None if has_media else messages,
		)

	async def _post_payload(
		self,
		payload: Dict[str, Any],
		*,
		fallback_messages: Optional[List[Dict[str, Any]]],
	) -> str:
		params: Dict[str, Any] = {}
		headers: Dict[str, str] = {}
		if self._auth_in_query:
			params["key"] = self.api_key
		else:
			headers["x-goog-api-key"] = self.api_key
		last_error: Optional[Exception] = None
		try:
			r = await self._client.post(self.base_url, params=params, headers=headers, json=payload)
			r.raise_for_status()
		except httpx.HTTPStatusError as http_err:
			last_error = http_err
		except httpx.RequestError as net_err:
			last_error = net_err
		if last_error is None:
			try:
				data = r.json()
			except ValueError:
				last_error = RuntimeError(f"Unexpected Gemini response: {r.text}")
			else:
				candidates = data.get("candidates") or []
				try:
					return candidates[0]["content"]["parts"][0]["text"]
				except (IndexError, KeyError, TypeError):
					# Blocked or empty candidates; the caller still gets a readable reply
					logger.warning("Gemini returned no text candidate: %s", data.get("promptFeedback"))
					return FALLBACK_REPLY
		if not self._fallback_enabled or fallback_messages is None:
			raise last_error or RuntimeError("Gemini call failed and no fallback configured")
		logger.warning("Gemini call failed (%s); trying OpenRouter", last_error)
		return await self._fallback_generate(fallback_messages, last_error)

	async def aclose(self) -> None:
		await self._client.aclose()
		if self._fallback_client is not None:
			await self._fallback_client.aclose()

	async def _fallback_generate(self, messages: List[Dict[str, Any]], primary_error: Optional[Exception]) -> str:
		if not self._fallback_client or not self._openrouter_api_key:
			raise primary_error or RuntimeError("Fallback requested but OpenRouter is not configured")
		headers = {k: v for k, v in self._openrouter_headers.items() if v}
		payload: Dict[str, Any] = {
			"model": self._openrouter_model,
			"messages": [{"role": m.get("role", "user"), "content": m.get("content", "")} for m in messages],
		}
		try:
			r = await self._fallback_client.post(
				self._openrouter_base_url,
				headers=headers,
				json=payload,
			)
			r.raise_for_status()
			data = r.json()
			return data["choices"][0]["message"]["content"]
		except Exception as fallback_err:
			if primary_error is not None:
				raise RuntimeError(
					f"Gemini primary call failed ({primary_error}); fallback via OpenRouter also failed"
				) from fallback_err
			raise fallback_err
