"""Async client for OpenAI-compatible chat and embedding APIs."""
import asyncio
import httpx
from typing import Any, Dict, List, Optional, Sequence
import structlog

from chatrag import config
from chatrag.errors import ExternalDependencyError, InvalidInputError

logger = structlog.get_logger()


class LLMClient:
    """Chat completions and embeddings over HTTP.

    Works against OpenAI itself or any server exposing the same
    ``/chat/completions``, ``/embeddings`` and ``/models`` routes
    (Ollama, vLLM, LM Studio).
    """

    def __init__(
        self,
        base_url: str = None,
        api_key: str = None,
        chat_model: str = None,
        embedding_model: str = None,
        timeout: float = None,
        batch_size: int = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            base_url: API base URL including the version prefix (default from config)
            api_key: Bearer token, if the server needs one (default from config)
            chat_model: Default chat model (default from config)
            embedding_model: Embedding model (default from config)
            timeout: Request timeout in seconds (default from config)
            batch_size: Maximum texts per embeddings request (default from config)
            transport: Optional httpx transport, used by tests
        """
        self.base_url = (base_url or config.LLM_BASE_URL).rstrip("/")
        self.api_key = config.LLM_API_KEY if api_key is None else api_key
        self.chat_model = chat_model or config.CHAT_MODEL
        self.embedding_model = embedding_model or config.EMBEDDING_MODEL
        self.timeout = timeout or config.LLM_TIMEOUT
        self.batch_size = batch_size or config.EMBEDDING_BATCH_SIZE
        self.transport = transport

    def _client(self, timeout: Optional[float] = None) -> httpx.AsyncClient:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout or self.timeout,
            transport=self.transport,
        )

    async def _post(self, path: str, payload: Dict[str, Any], operation: str) -> Dict[str, Any]:
        try:
            async with self._client() as client:
                response = await client.post(path, json=payload)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                "llm_http_error",
                operation=operation,
                error=str(e),
                status_code=e.response.status_code,
            )
            raise ExternalDependencyError(
                f"{operation} failed: {e}",
                dependency="llm",
                details={"status_code": e.response.status_code},
            ) from e
        except httpx.HTTPError as e:
            logger.error(
                "llm_connection_error",
                operation=operation,
                error=str(e),
                base_url=self.base_url,
            )
            raise ExternalDependencyError(f"{operation} failed: {e}", dependency="llm") from e
        except ValueError as e:
            logger.error("llm_invalid_json", operation=operation, error=str(e))
            raise ExternalDependencyError(
                f"{operation} returned invalid JSON: {e}", dependency="llm"
            ) from e

    async def chat_completion(
        self,
        messages: List[Dict[str, str]],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        response_format: str = "text",
    ) -> str:
        """Send a chat completion request.

        Args:
            messages: List of message dicts with 'role' and 'content'
            model: Model to use (defaults to the configured chat model)
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate
            response_format: "text" or "json_object"

        Returns:
            Content of the first choice ('' if the model returned none)

        Raises:
            ExternalDependencyError: On transport, HTTP or response-shape errors
        """
        model = model or self.chat_model

        payload = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if response_format != "text":
            payload["response_format"] = {"type": response_format}

        logger.info(
            "llm_chat_request",
            model=model,
            message_count=len(messages),
            response_format=response_format,
        )

        data = await self._post("/chat/completions", payload, "Chat completion")

        try:
            content = data["choices"][0]["message"].get("content") or ""
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise ExternalDependencyError(
                f"Chat completion response missing choices: {e}", dependency="llm"
            ) from e

        logger.info("llm_chat_response", model=model, response_length=len(content))

        return content

    async def _embeddings_request(self, texts: Sequence[str]) -> List[List[float]]:
        payload = {"model": self.embedding_model, "input": list(texts)}

        logger.debug(
            "llm_embedding_request",
            model=self.embedding_model,
            input_count=len(texts),
        )

        data = await self._post("/embeddings", payload, "Text embedding")

        try:
            items = sorted(data["data"], key=lambda item: item.get("index", 0))
            embeddings = [item["embedding"] for item in items]
        except (KeyError, TypeError, AttributeError) as e:
            raise ExternalDependencyError(
                f"Embedding response missing data: {e}", dependency="llm"
            ) from e

        if len(embeddings) != len(texts) or any(not e for e in embeddings):
            raise ExternalDependencyError(
                "Embedding response does not match request",
                dependency="llm",
                details={"requested": len(texts), "returned": len(embeddings)},
            )

        return embeddings

    async def embed(self, text: str) -> List[float]:
        """Generate the embedding for a single text.

        Raises:
            ExternalDependencyError: On API errors
        """
        embeddings = await self._embeddings_request([text])
        return embeddings[0]

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        """Generate embeddings for many texts.

        Texts are sent in requests of ``batch_size`` that run concurrently.
        Results are index-aligned with the input. If any request fails the
        whole batch fails.

        Args:
            texts: Texts to embed

        Returns:
            List of embedding vectors

        Raises:
            InvalidInputError: If texts is empty
            ExternalDependencyError: If any request fails
        """
        if not texts:
            raise InvalidInputError("Input texts array is empty", field="texts")

        batches = [
            texts[i : i + self.batch_size] for i in range(0, len(texts), self.batch_size)
        ]

        results = await asyncio.gather(*(self._embeddings_request(batch) for batch in batches))

        embeddings = [embedding for batch in results for embedding in batch]

        logger.info(
            "embeddings_batch_generated",
            model=self.embedding_model,
            count=len(embeddings),
            requests=len(batches),
            dimension=len(embeddings[0]),
        )

        return embeddings

    async def list_models(self) -> List[str]:
        """List model ids available on the server.

        Raises:
            ExternalDependencyError: On API errors
        """
        try:
            async with self._client(timeout=5.0) as client:
                response = await client.get("/models")
                response.raise_for_status()
                data = response.json()
                return [m["id"] for m in data.get("data", [])]
        except (httpx.HTTPError, ValueError, KeyError) as e:
            logger.error("llm_list_models_error", error=str(e))
            raise ExternalDependencyError(f"Listing models failed: {e}", dependency="llm") from e

    async def initialize(self) -> bool:
        """Check that the provider is reachable."""
        logger.info("llm_initializing", base_url=self.base_url)
        models = await self.list_models()
        logger.info("llm_connected", model_count=len(models))
        return True
