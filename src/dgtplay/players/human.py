# Human Player
#
# This file is part of the dgtplay project
#
# A human player whose moves come from the physical board.
#
# Licensed under the GNU General Public License v3.0 or later.
# See LICENSE.md for details.

from typing import Optional

from dgtplay.board.logging import log
from .base import Player, PlayerConfig, PlayerType


class HumanPlayer(Player):
    """A player whose moves are the moves detected on the physical board.

    The base turn protocol is used as is: each turn waits for the next
    move of this player's color reported by the board.
    """

    def __init__(self, color: str, game, config: Optional[PlayerConfig] = None):
        super().__init__(color, game, config)
        log.info(f"[HumanPlayer] {color} player ready: {self.name}")

    @property
    def player_type(self) -> PlayerType:
        """Human player type."""
        return PlayerType.HUMAN

    def get_info(self) -> dict:
        info = super().get_info()
        info.update({
            'description': 'Human player (physical board)',
        })
        return info


def create_human_player(color: str, game, first_name: str = "player", last_name: str = "") -> HumanPlayer:
    """Factory function to create a human player with budget from settings."""
    config = PlayerConfig.from_settings(first_name=first_name, last_name=last_name)
    return HumanPlayer(color, game, config)
