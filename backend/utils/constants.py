"""
Constants used across the Battleship match history system.
"""

# Board extent: coordinates run from 0 to BOARD_SIZE - 1 on both axes
BOARD_SIZE = 10

# Logical row-set names exposed by the repository
SELF_SHIPS = "self_ships"
RIVAL_SHIPS = "rival_ships"
SELF_BOARD = "self_board"
RIVAL_BOARD = "rival_board"
MATCH_ROW_TABLES = (SELF_SHIPS, RIVAL_SHIPS, SELF_BOARD, RIVAL_BOARD)
