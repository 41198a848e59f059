"""
The seven stages that produce one generated token.
"""
from typing import NamedTuple


class FlowStage(NamedTuple):
    title: str
    text: str
    detail: str
    explain: str


STAGES = (
    FlowStage(
        "1) User Prompt",
        "Raw text enters the model context window.",
        "Example: 'Explain PCA in simple terms'.",
        "The model starts with plain text, not meaning. It must first convert text to internal tokens.",
    ),
    FlowStage(
        "2) Tokenization",
        "Text is split into model tokens/subwords.",
        "Words become IDs the model can process numerically.",
        "A word can be one token or multiple pieces. The model predicts the next token piece-by-piece.",
    ),
    FlowStage(
        "3) Embedding + Position",
        "Each token ID maps to a vector; position is added.",
        "Now each token is a dense numeric representation.",
        "Same word in different positions gets a different final representation due to position encoding.",
    ),
    FlowStage(
        "4) Transformer Blocks",
        "Repeated attention + feed-forward layers transform context.",
        "Causal mask prevents looking at future tokens.",
        "Attention decides which earlier tokens matter for each current token. Feed-forward refines that info.",
    ),
    FlowStage(
        "5) Logits",
        "Final hidden state projects to vocabulary scores.",
        "One score per candidate next token.",
        "Higher score means the model currently prefers that token more strongly.",
    ),
    FlowStage(
        "6) Sampling",
        "Softmax + decoding picks next token.",
        "Greedy/top-k/top-p/temperature affect creativity.",
        "Low temperature is safer and more deterministic; high temperature is more diverse but riskier.",
    ),
    FlowStage(
        "7) Append + Repeat",
        "Chosen token is appended, process runs again.",
        "This autoregressive loop generates the response.",
        "LLMs generate one token at a time until stop condition or max length is reached.",
    ),
)

EXAMPLE_PROMPT = "Researchers analyze data and write ..."
SAMPLING_STAGE = 5


def stage_view(index):
    index = max(0, min(int(index), len(STAGES) - 1))
    return {
        'index': index,
        'stage': STAGES[index],
        'is_sampling': index == SAMPLING_STAGE,
        'repeats': index >= 3,
    }
