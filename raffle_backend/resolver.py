class WinnerResolver:
    """Deterministic mapping of a random value onto the participant list."""

    def select(self, random_value: int, participants):
        if not participants:
            raise ValueError("Cannot resolve a winner without participants")
        if random_value < 0:
            raise ValueError(f"Random value must be non-negative, got {random_value}")

        winner_index = random_value % len(participants)
        return winner_index, participants[winner_index]
