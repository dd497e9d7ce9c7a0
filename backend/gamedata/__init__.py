# Gamedata module
# Submodules should be imported directly:
#   from gamedata.loader import load_rule_set
#   from gamedata.rule_set import RuleSet, ABILITIES, SKILL_TO_ABILITY
#   from gamedata.models import Race, CharacterClass, Equipment
