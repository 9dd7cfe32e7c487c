from typing import List

from cliprelay.core.configs import InferenceConfig
from cliprelay.core.errors import ConfigError
from cliprelay.engines.base import InferenceEngine


class EngineFactory:
    """
    Factory class to create inference engines from an InferenceConfig.
    Supports a local llama.cpp model and the hosted Mistral API.
    """

    def __init__(self):
        """Initialize the factory with the available engines"""
        self.engines = {
            "llama": "Local GGUF model via llama-cpp-python",
            "mistral": "Mistral chat API via the mistralai SDK",
        }

    def create_engine(self, config: InferenceConfig) -> InferenceEngine:
        """
        Create and return the engine selected by ``config.engine``

        Args:
            config: Inference node configuration

        Returns:
            A ready-to-use InferenceEngine (the llama engine loads its model here)

        Raises:
            ConfigError: If the engine is unknown or cannot be initialised
        """
        engine = config.engine.lower()

        if engine not in self.engines:
            raise ConfigError(
                f"Engine {engine} not supported. Available engines: {', '.join(self.engines.keys())}"
            )

        if engine == "llama":
            from cliprelay.engines.llama import LlamaEngine

            if config.model_path is None:
                raise ConfigError("Missing 'model_path' for the llama engine.")
            return LlamaEngine(model_path=config.model_path, chat_format=config.chat_format)

        from cliprelay.engines.mistral import MistralEngine

        if not config.api_key:
            raise ConfigError("Missing API key for the mistral engine.")
        return MistralEngine(api_key=config.api_key, model=config.model)

    def get_available_engines(self) -> List[str]:
        """Return a list of available engine names"""
        return list(self.engines.keys())
