"""Per-model cost estimates. Prices are USD per 1K tokens and approximate."""

COST_PER_1K_TOKENS: dict[str, tuple[float, float]] = {
    # model: (input, output)
    "gpt-4": (0.03, 0.06),
    "gpt-4-turbo": (0.01, 0.03),
    "gpt-4o": (0.005, 0.015),
    "gpt-4o-mini": (0.00015, 0.0006),
    "gpt-3.5-turbo": (0.0015, 0.002),
    "claude-3-opus": (0.015, 0.075),
    "claude-3-sonnet": (0.003, 0.015),
    "claude-3-haiku": (0.00025, 0.00125),
    "gemini-pro": (0.00125, 0.00125),
    "gemini-1.5-pro": (0.0035, 0.0035),
}

DEFAULT_COST_PER_1K = (0.005, 0.01)


def estimate_cost(model: str, tokens_prompt: int, tokens_completion: int) -> float:
    """Estimated USD cost of one call. Unknown models use DEFAULT_COST_PER_1K."""
    input_price, output_price = COST_PER_1K_TOKENS.get(model, DEFAULT_COST_PER_1K)
    return (tokens_prompt / 1000) * input_price + (tokens_completion / 1000) * output_price
