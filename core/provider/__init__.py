from core.provider.openai_compat import OpenAICompatProvider
