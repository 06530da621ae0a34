"""
Neural sequence architectures.

Both networks map a batch of windows ``(batch, window_length, n_features)`` to
``(batch, output_size)``; ``output_size`` is 1 for cost regression and the
number of predicted risk categories for classification (raw logits; softmax
is applied at prediction time).

AttentionLSTMNet
    Stacked LSTM encoder -> additive attention score per timestep -> softmax
    over time -> attention-weighted context vector -> dense head.

SelfAttentionNet
    Linear input projection + learned positional embedding -> N blocks of
    (multi-head self-attention + residual + LayerNorm, feed-forward +
    residual + LayerNorm) -> mean pooling over time -> dropout -> dense head.
"""

from __future__ import annotations

import torch
from torch import nn


class AttentionLSTMNet(nn.Module):
    def __init__(
        self,
        input_size: int,
        hidden_size: int = 64,
        num_layers: int = 2,
        dropout: float = 0.2,
        output_size: int = 1,
    ):
        super().__init__()
        self.lstm = nn.LSTM(
            input_size=input_size,
            hidden_size=hidden_size,
            num_layers=num_layers,
            batch_first=True,
            dropout=dropout if num_layers > 1 else 0.0,
        )
        self.attention = nn.Sequential(
            nn.Linear(hidden_size, hidden_size),
            nn.Tanh(),
            nn.Linear(hidden_size, 1),
        )
        head_width = max(1, hidden_size // 2)
        self.head = nn.Sequential(
            nn.Linear(hidden_size, head_width),
            nn.ReLU(),
            nn.Dropout(dropout),
            nn.Linear(head_width, output_size),
        )

    def attention_weights(self, x: torch.Tensor) -> torch.Tensor:
        """Per-timestep attention weights, shape ``(batch, window_length)``."""
        encoded, _ = self.lstm(x)
        return torch.softmax(self.attention(encoded).squeeze(-1), dim=1)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        encoded, _ = self.lstm(x)
        weights = torch.softmax(self.attention(encoded), dim=1)
        context = (weights * encoded).sum(dim=1)
        return self.head(context)


class SelfAttentionBlock(nn.Module):
    def __init__(self, hidden_size: int, num_heads: int, dropout: float):
        super().__init__()
        self.attn = nn.MultiheadAttention(
            embed_dim=hidden_size,
            num_heads=num_heads,
            dropout=dropout,
            batch_first=True,
        )
        self.norm1 = nn.LayerNorm(hidden_size)
        self.ffn = nn.Sequential(
            nn.Linear(hidden_size, hidden_size * 2),
            nn.ReLU(),
            nn.Dropout(dropout),
            nn.Linear(hidden_size * 2, hidden_size),
        )
        self.norm2 = nn.LayerNorm(hidden_size)
        self.dropout = nn.Dropout(dropout)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        attended, _ = self.attn(x, x, x, need_weights=False)
        x = self.norm1(x + self.dropout(attended))
        return self.norm2(x + self.dropout(self.ffn(x)))


class SelfAttentionNet(nn.Module):
    def __init__(
        self,
        input_size: int,
        window_length: int,
        hidden_size: int = 128,
        num_layers: int = 4,
        num_heads: int = 8,
        dropout: float = 0.3,
        output_size: int = 1,
    ):
        super().__init__()
        self.input_proj = nn.Linear(input_size, hidden_size)
        self.position = nn.Parameter(torch.zeros(1, window_length, hidden_size))
        self.blocks = nn.ModuleList(
            [SelfAttentionBlock(hidden_size, num_heads, dropout) for _ in range(num_layers)]
        )
        self.dropout = nn.Dropout(dropout)
        self.head = nn.Linear(hidden_size, output_size)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        h = self.input_proj(x) + self.position[:, : x.size(1), :]
        for block in self.blocks:
            h = block(h)
        pooled = self.dropout(h.mean(dim=1))
        return self.head(pooled)
