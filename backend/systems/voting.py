"""投票结算（最高票胜出，平票随机）"""

from __future__ import annotations

import logging
import random
from typing import Protocol, Sequence, TypeVar, TYPE_CHECKING

if TYPE_CHECKING:
    from models.vote_models import VoteOption

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RandomSource(Protocol):
    """随机源，测试时可注入确定性实现"""

    def choice(self, seq: Sequence[T]) -> T: ...


_default_rng = random.Random()


def get_default_rng() -> RandomSource:
    return _default_rng


def pick_winner(
    options: Sequence[VoteOption],
    rng: RandomSource | None = None,
) -> VoteOption | None:
    """
    计算投票结果。

    Args:
        options: 候选选项（含票数）
        rng: 随机源，平票时在并列最高票中均匀随机

    Returns:
        胜出选项；无选项或全部 0 票时返回 None（0 票不强制换图）
    """
    if not options:
        return None

    max_votes = max(o.vote_count for o in options)
    if max_votes == 0:
        return None

    top_options = [o for o in options if o.vote_count == max_votes]
    if len(top_options) == 1:
        return top_options[0]

    winner = (rng or _default_rng).choice(top_options)
    logger.info(
        f"平票 {max_votes} 票: {[(o.map_name, o.team_mode) for o in top_options]}，"
        f"随机选中 {winner.map_name}"
    )
    return winner
