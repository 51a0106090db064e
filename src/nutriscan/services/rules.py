"""Condition-aware rule evaluation for nutrient profiles."""

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from nutriscan.domain.nutrients import (
    FlagLevel,
    HealthCondition,
    HealthFlag,
    NutrientProfile,
)
from nutriscan.domain.scans import Evaluation

DEFAULT_FLAG = HealthFlag(FlagLevel.GOOD, "Suitable for your health condition")

GENERAL_RECOMMENDATIONS: tuple[str, ...] = (
    "Add vegetables to increase fiber content",
    "Drink plenty of water with meals",
)

_LEVEL_SCORES = {FlagLevel.GOOD: 100, FlagLevel.CAUTION: 60, FlagLevel.CRITICAL: 0}


@dataclass(frozen=True)
class Rule:
    """Threshold rule that emits a flag when its predicate holds."""

    predicate: Callable[[NutrientProfile], bool]
    level: FlagLevel
    message: str
    recommendation: str | None = None


def _above(nutrient: str, limit: float) -> Callable[[NutrientProfile], bool]:
    return lambda profile: profile.amount(nutrient) > limit


def _at_least(nutrient: str, limit: float) -> Callable[[NutrientProfile], bool]:
    return lambda profile: profile.amount(nutrient) >= limit


def _between(
    nutrient: str, lower: float, upper: float
) -> Callable[[NutrientProfile], bool]:
    """Match lower < amount <= upper."""
    return lambda profile: lower < profile.amount(nutrient) <= upper


def _balanced(profile: NutrientProfile) -> bool:
    return profile.amount("calories") < 600 and profile.amount("protein") >= 15


DEFAULT_RULES: Mapping[HealthCondition, tuple[Rule, ...]] = MappingProxyType(
    {
        HealthCondition.NORMAL: (
            Rule(_balanced, FlagLevel.GOOD, "Well-balanced nutritional profile"),
        ),
        HealthCondition.DIABETIC: (
            Rule(
                _above("carbs", 45),
                FlagLevel.CRITICAL,
                "High carbohydrate content - monitor blood sugar",
                "Consider smaller portions or pair with protein",
            ),
            Rule(
                _above("sugar", 10),
                FlagLevel.CAUTION,
                "Contains added sugars",
                "Limit sugary foods and drinks",
            ),
            Rule(
                _at_least("fiber", 5),
                FlagLevel.GOOD,
                "Good fiber content helps blood sugar control",
            ),
        ),
        HealthCondition.HYPERTENSIVE: (
            Rule(
                _above("sodium", 800),
                FlagLevel.CRITICAL,
                "Very high sodium - risk for blood pressure",
                "Choose low-sodium alternatives",
            ),
            Rule(
                _between("sodium", 400, 800),
                FlagLevel.CAUTION,
                "Moderate sodium content",
                "Monitor daily sodium intake",
            ),
            Rule(
                _above("potassium", 300),
                FlagLevel.GOOD,
                "Contains potassium - good for blood pressure",
            ),
        ),
        HealthCondition.WEIGHT_LOSS: (
            Rule(
                _above("calories", 500),
                FlagLevel.CAUTION,
                "High calorie content",
                "Consider smaller portions or increase physical activity",
            ),
            Rule(
                _at_least("protein", 20),
                FlagLevel.GOOD,
                "High protein helps with satiety",
            ),
            Rule(_at_least("fiber", 5), FlagLevel.GOOD, "High fiber promotes fullness"),
        ),
        HealthCondition.PREGNANT_NURSING: (
            Rule(
                _at_least("protein", 25),
                FlagLevel.GOOD,
                "Excellent protein for maternal health",
            ),
            Rule(_at_least("iron", 3), FlagLevel.GOOD, "Good iron content for pregnancy"),
            Rule(
                _at_least("calcium", 200),
                FlagLevel.GOOD,
                "Calcium supports baby development",
            ),
        ),
        HealthCondition.CHOLESTEROL_WATCH: (
            Rule(
                _above("fat", 20),
                FlagLevel.CAUTION,
                "High fat content",
                "Choose lean proteins and healthy fats",
            ),
            Rule(
                _above("cholesterol", 200),
                FlagLevel.CRITICAL,
                "High cholesterol content",
                "Limit high-cholesterol foods",
            ),
            Rule(_at_least("fiber", 5), FlagLevel.GOOD, "Fiber helps reduce cholesterol"),
        ),
    }
)

# Advice given for a condition regardless of which rules fire.
DEFAULT_CONDITION_ADVICE: Mapping[HealthCondition, tuple[str, ...]] = MappingProxyType(
    {
        HealthCondition.PREGNANT_NURSING: (
            "Ensure adequate hydration",
            "Include variety of nutrients",
        ),
    }
)


@dataclass(frozen=True)
class RuleEngine:
    """Maps a nutrient profile and health condition to flags and advice."""

    rules: Mapping[HealthCondition, tuple[Rule, ...]] = field(
        default_factory=lambda: DEFAULT_RULES
    )
    condition_advice: Mapping[HealthCondition, tuple[str, ...]] = field(
        default_factory=lambda: DEFAULT_CONDITION_ADVICE
    )
    general_recommendations: tuple[str, ...] = GENERAL_RECOMMENDATIONS

    def evaluate(
        self, profile: NutrientProfile, condition: HealthCondition
    ) -> Evaluation:
        """Evaluate the rule table for a single condition."""
        flags: list[HealthFlag] = []
        recommendations: list[str] = []
        for rule in self.rules.get(condition, ()):
            if not rule.predicate(profile):
                continue
            flags.append(HealthFlag(rule.level, rule.message))
            if rule.recommendation:
                recommendations.append(rule.recommendation)
        recommendations.extend(self.condition_advice.get(condition, ()))
        if not flags:
            flags.append(DEFAULT_FLAG)
        recommendations.extend(self.general_recommendations)
        return Evaluation(flags=tuple(flags), recommendations=tuple(recommendations))


def health_score(flags: Iterable[HealthFlag]) -> int:
    """Return a 0-100 score where good flags weigh fully and cautions partly."""
    levels = [flag.level for flag in flags]
    if not levels:
        return 100
    total = sum(_LEVEL_SCORES[level] for level in levels)
    return round(total / len(levels))


def highest_level(flags: Iterable[HealthFlag]) -> FlagLevel:
    """Return the most severe level among flags, GOOD when empty."""
    return max(
        (flag.level for flag in flags),
        key=lambda level: level.severity,
        default=FlagLevel.GOOD,
    )
