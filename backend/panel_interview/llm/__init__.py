# LLM module
from .client import LLMClient, llm_client
