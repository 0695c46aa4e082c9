"""Game domain services: cards, draws, patterns, timers and the two game variants.

Routes and socket handlers call into ``number_bingo`` and ``letter_bingo``;
everything else here is shared mechanics with no transport concerns.
"""
