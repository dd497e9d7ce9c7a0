"""
Exception hierarchy for the character rules engine
"""


class CharacterForgeError(Exception):
    """Base exception for all rules engine errors"""
    pass


class IncompleteDataError(CharacterForgeError):
    """Raised when creation input references a race or class the rule set lacks"""
    pass


class InvalidRestRequestError(CharacterForgeError):
    """Raised when a short rest asks for more hit dice than are available"""
    pass


class InvalidChoiceError(CharacterForgeError):
    """Raised when resolving a choice that is not pending or is malformed"""
    pass


class CharacterNotFoundError(CharacterForgeError):
    """Raised when a character id is not known to the session"""

    def __init__(self, character_id: str):
        self.character_id = character_id
        super().__init__(f"Character {character_id} not found")


class CharacterInvariantError(CharacterForgeError):
    """Raised when a character record violates its consistency rules"""

    def __init__(self, violations):
        self.violations = list(violations)
        super().__init__("; ".join(self.violations))


class RuleSetError(CharacterForgeError):
    """Raised when rule data files are missing or malformed"""
    pass
