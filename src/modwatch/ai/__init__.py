"""
Pluggable chat analysis for Modwatch.

- **analysis_strategy.py**: The ``AnalysisStrategy`` protocol (prompt in,
  structured text out) and ``HeuristicAnalysisStrategy``, a keyword based
  implementation that needs no model.
- **llm_strategy.py**: ``OpenAIAnalysisStrategy`` using the AsyncOpenAI client
  against any OpenAI-compatible endpoint (OpenAI, vLLM, LM Studio, Ollama).

Strategies are trusted only structurally: the detector validates every
response and skips a category whose output does not parse.
"""
