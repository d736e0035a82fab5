"""
LLM-backed customer enrichment
Value prediction, retention strategies and marketing ideas
"""

import re
import json
import math
import platform
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import psutil
from huggingface_hub import hf_hub_download, HfApi
from llama_cpp import Llama

from .exceptions import EnrichmentError, EnrichmentNotConfigured
from .model_providers import REMOTE_PROVIDERS, ModelProvider, create_provider
from .models import Customer, CustomerSegment, Prediction

logger = logging.getLogger(__name__)


class LLMManager:
    """
    Enrichment collaborator backed by a remote API or a local GGUF model
    """

    DEFAULT_MODEL = "anthropic"
    SYSTEM_PROMPT = "You are a customer analytics expert. You answer with JSON only."

    PREDICTION_TEMPERATURE = 0.3
    ADVICE_TEMPERATURE = 0.7

    FENCE_PATTERN = re.compile(r"^```(?:json)?\s*\n?(.*?)\n?\s*```$", re.DOTALL)

    def __init__(
        self,
        model_id: Optional[str] = None,
        cache_dir: Optional[Path] = None,
        max_tokens: int = 1024,
        provider: Optional[ModelProvider] = None
    ):
        """
        Initialize the LLM manager
        Args:
            model_id: "anthropic", "openai" or a HuggingFace GGUF repo ID
            cache_dir: directory for local model cache (uses ./models if None)
            max_tokens: maximum tokens for generation
            provider: ready-made provider, skips provider creation
        """
        self.model_id = model_id or self.DEFAULT_MODEL
        self.cache_dir = cache_dir or Path("models")
        self.max_tokens = max_tokens
        self.total_tokens = 0

        self._provider = provider
        self._load_error: Optional[str] = None
        if self._provider is None and self.is_remote:
            self._provider = create_provider(self.model_id)

    @property
    def is_remote(self) -> bool:
        return self.model_id in REMOTE_PROVIDERS

    def predict_value(self, customer: Customer) -> Prediction:
        """
        Predict a customer's 12-month value and segment
        Raises EnrichmentError
        """
        prompt = self._build_prediction_prompt(customer)
        result = self._parse_json(self._generate(prompt, self.PREDICTION_TEMPERATURE))

        if not isinstance(result, dict):
            raise EnrichmentError(f"Expected a JSON object, got: {result!r}")

        raw_value = result.get("predictedValue", result.get("predictedLTV"))
        if isinstance(raw_value, bool) or not isinstance(raw_value, (int, float)):
            raise EnrichmentError(f"Prediction is not a number: {raw_value!r}")
        try:
            value = float(raw_value)
        except (OverflowError, ValueError) as e:
            raise EnrichmentError(f"Prediction is out of range: {e}") from e
        if not math.isfinite(value) or value < 0:
            raise EnrichmentError(f"Prediction is not a non-negative number: {raw_value!r}")

        segment = CustomerSegment.from_label(result.get("segment"))
        logger.debug(f"Predicted {value} ({segment.value}) for {customer.id}")

        return Prediction(predicted_value=value, segment=segment)

    def retention_strategies(self, predicted_value: float, segment: CustomerSegment) -> List[str]:
        """Suggest retention strategies for a value/segment pair"""
        prompt = self._build_retention_prompt(predicted_value, segment)
        return self._parse_string_list(self._generate(prompt, self.ADVICE_TEMPERATURE), "strategies")

    def marketing_ideas(self, predicted_value: float, segment: CustomerSegment) -> List[str]:
        """Suggest personalized marketing efforts for a value/segment pair"""
        prompt = self._build_marketing_prompt(predicted_value, segment)
        return self._parse_string_list(self._generate(prompt, self.ADVICE_TEMPERATURE), "ideas")

    def _build_prediction_prompt(self, customer: Customer) -> str:
        history = "\n  ".join(
            f"- Date: {p.date.isoformat()}, Amount: ${p.amount:.2f}" for p in customer.purchases
        ) or "- (no purchases recorded)"

        reported_count = ""
        if customer.source_purchase_count:
            reported_count = f"- Original reported purchase count: {customer.source_purchase_count}\n"

        segments = ", ".join(s.value for s in CustomerSegment if s is not CustomerSegment.UNKNOWN)

        return f"""Analyze the following customer's purchase history and predict their customer lifetime value for the next 12 months.
Also classify the customer into exactly one of these segments: {segments}.
Respond strictly with a JSON object with keys "predictedValue" (a number, e.g. 450.75) and "segment" (a string from the list).

Customer Data:
- ID: {customer.id}
- Joined: {customer.join_date.isoformat()}
- Purchase History (Date: YYYY-MM-DD, Amount: USD):
  {history}
{reported_count}
Consider purchase frequency, average order value, recency and the overall spending trend.
Sparse or very recent history (a few purchases in the last 3-6 months) suggests "New".
Declining spend or long gaps after a period of activity suggest "At-Risk".
Base "High-Value", "Medium-Value" and "Low-Value" on recency, frequency and monetary value relative to typical customer behavior.

JSON Output Example:
{{"predictedValue": 500.75, "segment": "Medium-Value"}}"""

    def _build_retention_prompt(self, predicted_value: float, segment: CustomerSegment) -> str:
        return f"""For a customer classified as "{segment.value}" with a predicted 12-month value of ${predicted_value:.2f}, suggest 3 distinct and actionable retention strategies.
Explain why each suits this segment and value, and name a clear action.
Respond strictly with a JSON object whose "strategies" key holds an array of 3 strings."""

    def _build_marketing_prompt(self, predicted_value: float, segment: CustomerSegment) -> str:
        return f"""For a customer classified as "{segment.value}" with a predicted 12-month value of ${predicted_value:.2f}, suggest 3 personalized marketing efforts or promotions.
Describe each offer, how it fits the segment and value, and the intended outcome.
Respond strictly with a JSON object whose "ideas" key holds an array of 3 strings."""

    def _generate(self, prompt: str, temperature: float) -> str:
        """Run a prompt through the provider, loading a local model on first use"""
        completion = self._get_provider().complete_json(
            self.SYSTEM_PROMPT, prompt, self.max_tokens, temperature
        )
        self.total_tokens += completion.total_tokens
        return completion.text

    def _get_provider(self) -> ModelProvider:
        if self._provider is None:
            # A model that failed to load is not retried on later calls
            if self._load_error is not None:
                raise EnrichmentNotConfigured(self._load_error)
            try:
                model = self._load_model()
            except EnrichmentNotConfigured as e:
                self._load_error = str(e)
                raise
            self._provider = create_provider(self.model_id, model_instance=model)
        return self._provider

    def _parse_json(self, text: str) -> Any:
        """Decode a JSON response, tolerating a Markdown code fence around it"""
        json_str = text.strip()
        match = self.FENCE_PATTERN.match(json_str)
        if match and match.group(1):
            json_str = match.group(1).strip()

        # ValueError also covers integers longer than the interpreter's digit limit
        try:
            return json.loads(json_str)
        except ValueError as e:
            raise EnrichmentError(f"Failed to parse AI response as JSON. Raw text: {json_str[:200]}") from e

    def _parse_string_list(self, text: str, key: str) -> List[str]:
        """Strings under `key` of a JSON object; a bare array is accepted too"""
        result = self._parse_json(text)
        if isinstance(result, dict):
            result = result.get(key)
        if not isinstance(result, list):
            raise EnrichmentError(f"Expected a JSON array under \"{key}\", got: {result!r}")
        return [str(item) for item in result]

    def _load_model(self) -> Llama:
        """
        Download (if needed) and initialize a local GGUF model
        Raises EnrichmentNotConfigured when the model cannot be loaded
        """
        try:
            logger.info(f"Loading model: {self.model_id}")

            self.cache_dir.mkdir(parents=True, exist_ok=True)
            filename = self._find_model_filename()
            model_path = hf_hub_download(
                repo_id=self.model_id,
                filename=filename,
                local_dir=str(self.cache_dir),
            )
            logger.debug(f"Model cached at: {model_path}")

            model = Llama(model_path=str(model_path), **self._get_model_parameters())

            logger.info("Model loaded successfully")
            return model

        except Exception as e:
            raise EnrichmentNotConfigured(f"Failed to load model {self.model_id}: {e}") from e

    def _find_model_filename(self) -> str:
        """Pick a GGUF file from the model repository"""
        api = HfApi()
        model_info = api.model_info(repo_id=self.model_id)
        gguf_files = [f.rfilename for f in model_info.siblings if f.rfilename.endswith(".gguf")]

        if not gguf_files:
            raise EnrichmentNotConfigured(f"No GGUF files found in model {self.model_id}")

        for quant in ("Q4_K_M", "Q4_0", "Q5_K_M", "Q8_0"):
            for filename in gguf_files:
                if quant in filename:
                    return filename

        logger.warning(f"No preferred quantization found, using: {gguf_files[0]}")
        return gguf_files[0]

    def _get_model_parameters(self) -> Dict[str, Any]:
        """Model parameters sized for the current hardware"""
        system = platform.system().lower()
        arch = platform.machine().lower()
        cpu_count = psutil.cpu_count(logical=False) or 4
        memory_gb = psutil.virtual_memory().total / (1024 ** 3)

        params = {
            "n_ctx": 4096,
            "n_threads": min(cpu_count, 8),
            "verbose": False,
            "n_batch": 512,
        }

        if system == "darwin" and "arm" in arch:
            params["n_gpu_layers"] = 35
            logger.debug("Configured for Apple Silicon with Metal acceleration")

        if memory_gb < 8:
            params["n_ctx"] = 2048
            params["n_batch"] = 256
            logger.debug("Reduced parameters for low-memory system")

        return params

    def get_model_info(self) -> Dict[str, Any]:
        """Information about the configured model"""
        return {
            "model_id": self.model_id,
            "provider": self.model_id if self.is_remote else "local",
            "cache_dir": str(self.cache_dir),
            "max_tokens": self.max_tokens,
            "available": self._provider is not None and self._provider.is_available(),
            "total_tokens": self.total_tokens,
        }
