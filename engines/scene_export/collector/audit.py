"""Component usage audit: what the exporter mapped, skipped or could not handle."""
from __future__ import annotations

from typing import Dict, List

from pydantic import BaseModel, Field

AUDIT_SCHEMA_VERSION = "1.0.0"

NATIVE_MAPPED = "native_mapped"
CUSTOM_STUB = "custom_stub"
IGNORED_AUTHORING = "ignored_authoring"
UNSUPPORTED_BUILTIN = "unsupported_builtin"

MAX_EXAMPLES = 5
MAX_TOP_MISSING = 20
MAX_GAP_TYPES = 10

# ordered: the first matching group decides the weight
IMPACT_WEIGHTS = (
    (("Animator", "Animation", "SkinnedMeshRenderer", "BlendShape", "Avatar"), 10.0),
    (("ParticleSystem", "VisualEffect", "VFX"), 8.0),
    (("CharacterController", "NavMeshAgent", "NavMesh"), 7.0),
    (("Canvas", "RectTransform", "TextMeshPro", "TMP_", "UnityEngine.UI", "Text"), 6.0),
    (("Joint", "WheelCollider", "Cloth"), 5.0),
    (("Sprite", "Tilemap"), 4.0),
)
DEFAULT_IMPACT_WEIGHT = 2.0

STRUCTURAL_GAPS = (
    ("animation", "Animation (clips/state machine/skeleton/skinning/blend)",
     ("Animator", "Animation", "SkinnedMeshRenderer", "BlendShape", "Avatar")),
    ("vfx_particles", "VFX / Particles", ("ParticleSystem", "VisualEffect", "VFX")),
    ("ui_runtime", "UI runtime (Canvas/RectTransform/Text)",
     ("Canvas", "RectTransform", "TextMeshPro", "TMP_", "UnityEngine.UI", "Text")),
    ("navigation_agents", "Navigation / Agents", ("NavMesh", "NavMeshAgent", "OffMeshLink")),
    ("advanced_physics", "Advanced physics controllers (joints/character/wheel)",
     ("Joint", "CharacterController", "WheelCollider", "Cloth")),
    ("stack_2d", "2D stack (sprites/tilemaps)", ("Sprite", "Tilemap", "CompositeCollider2D", "Rigidbody2D")),
)


class ComponentSceneCount(BaseModel):
    sceneName: str
    count: int


class ComponentAuditEntry(BaseModel):
    typeName: str
    classification: str
    isBuiltin: bool = False
    isMonoBehaviour: bool = False
    usageCount: int = 0
    impactWeight: float = 0.0
    score: float = 0.0
    scenes: List[ComponentSceneCount] = Field(default_factory=list)
    examples: List[str] = Field(default_factory=list)


class ComponentAuditTopEntry(BaseModel):
    typeName: str
    usageCount: int
    impactWeight: float
    score: float


class ComponentAuditSummary(BaseModel):
    totalComponentTypeCount: int = 0
    unsupportedBuiltinTypeCount: int = 0
    unsupportedBuiltinInstanceCount: int = 0
    topMissing: List[ComponentAuditTopEntry] = Field(default_factory=list)


class ComponentStructuralGap(BaseModel):
    key: str
    title: str
    detected: bool = False
    relatedComponentCount: int = 0
    relatedTypes: List[str] = Field(default_factory=list)


class ComponentAuditReport(BaseModel):
    schemaVersion: str = AUDIT_SCHEMA_VERSION
    generatedAtUtc: str = ""
    summary: ComponentAuditSummary = Field(default_factory=ComponentAuditSummary)
    components: List[ComponentAuditEntry] = Field(default_factory=list)
    structuralGaps: List[ComponentStructuralGap] = Field(default_factory=list)


def _contains_any(value: str, keywords) -> bool:
    lowered = (value or "").lower()
    return any(k and k.lower() in lowered for k in keywords)


def impact_weight(type_name: str, classification: str) -> float:
    if classification != UNSUPPORTED_BUILTIN or not type_name:
        return 0.0
    for keywords, weight in IMPACT_WEIGHTS:
        if _contains_any(type_name, keywords):
            return weight
    return DEFAULT_IMPACT_WEIGHT


class _Usage:
    def __init__(self, type_name: str, classification: str, is_builtin: bool, is_behaviour: bool):
        self.type_name = type_name
        self.classification = classification
        self.is_builtin = is_builtin
        self.is_behaviour = is_behaviour
        self.count = 0
        self.scene_counts: Dict[str, int] = {}
        self.examples: List[str] = []


class ComponentAudit:
    """Accumulates component usage across every scene of one export."""

    def __init__(self) -> None:
        self._usage: Dict[str, _Usage] = {}

    def record(
        self,
        type_name: str,
        classification: str,
        scene_name: str,
        node_path: str,
        is_builtin: bool = False,
        is_behaviour: bool = False,
    ) -> None:
        usage = self._usage.get(type_name)
        if usage is None:
            usage = _Usage(type_name, classification, is_builtin, is_behaviour)
            self._usage[type_name] = usage
        usage.classification = classification
        usage.count += 1

        scene_key = next((k for k in usage.scene_counts if k.lower() == scene_name.lower()), scene_name)
        usage.scene_counts[scene_key] = usage.scene_counts.get(scene_key, 0) + 1
        if len(usage.examples) < MAX_EXAMPLES and node_path not in usage.examples:
            usage.examples.append(node_path)

    def build_report(self, generated_at: str) -> ComponentAuditReport:
        report = ComponentAuditReport(generatedAtUtc=generated_at)
        for type_name in sorted(self._usage):
            usage = self._usage[type_name]
            weight = impact_weight(type_name, usage.classification)
            report.components.append(
                ComponentAuditEntry(
                    typeName=type_name,
                    classification=usage.classification,
                    isBuiltin=usage.is_builtin,
                    isMonoBehaviour=usage.is_behaviour,
                    usageCount=usage.count,
                    impactWeight=weight,
                    score=usage.count * weight,
                    scenes=[
                        ComponentSceneCount(sceneName=name, count=count)
                        for name, count in sorted(usage.scene_counts.items(), key=lambda kv: kv[0].lower())
                    ],
                    examples=list(usage.examples),
                )
            )

        missing = [c for c in report.components if c.classification == UNSUPPORTED_BUILTIN]
        report.summary = ComponentAuditSummary(
            totalComponentTypeCount=len(report.components),
            unsupportedBuiltinTypeCount=len(missing),
            unsupportedBuiltinInstanceCount=sum(c.usageCount for c in missing),
            topMissing=[
                ComponentAuditTopEntry(
                    typeName=c.typeName, usageCount=c.usageCount, impactWeight=c.impactWeight, score=c.score
                )
                for c in sorted(missing, key=lambda c: (-c.score, -c.usageCount, c.typeName))[:MAX_TOP_MISSING]
            ],
        )
        report.structuralGaps = [_structural_gap(key, title, keywords, missing) for key, title, keywords in STRUCTURAL_GAPS]
        return report


def _structural_gap(key: str, title: str, keywords, missing: List[ComponentAuditEntry]) -> ComponentStructuralGap:
    related = sorted(
        (e for e in missing if _contains_any(e.typeName, keywords)),
        key=lambda e: (-e.usageCount, e.typeName),
    )
    return ComponentStructuralGap(
        key=key,
        title=title,
        detected=bool(related),
        relatedComponentCount=sum(e.usageCount for e in related),
        relatedTypes=[e.typeName for e in related[:MAX_GAP_TYPES]],
    )


def _short(value: float) -> str:
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return text or "0"


def audit_markdown(audit: ComponentAuditReport) -> str:
    lines = [
        "# Component Audit",
        "",
        f"Generated: {audit.generatedAtUtc}",
        "",
        "## Summary",
        f"- Total component types: {audit.summary.totalComponentTypeCount}",
        f"- Unsupported built-in types: {audit.summary.unsupportedBuiltinTypeCount}",
        f"- Unsupported built-in instances: {audit.summary.unsupportedBuiltinInstanceCount}",
        "",
        "## Top Missing Built-in Components",
    ]
    if not audit.summary.topMissing:
        lines.append("- None")
    for top in audit.summary.topMissing:
        lines.append(
            f"- `{top.typeName}` usage={top.usageCount} impactWeight={_short(top.impactWeight)} score={_short(top.score)}"
        )
    lines += ["", "## Structural Gaps"]
    for gap in audit.structuralGaps:
        state = "DETECTED" if gap.detected else "not detected"
        lines.append(f"- {gap.title}: {state} (count={gap.relatedComponentCount})")
        if gap.relatedTypes:
            lines.append("  related: " + ", ".join(gap.relatedTypes))
    lines += ["", "## Components"]
    for component in sorted(audit.components, key=lambda c: (-c.score, c.typeName)):
        lines += [
            f"### `{component.typeName}`",
            f"- classification: `{component.classification}`",
            f"- usageCount: {component.usageCount}",
            f"- impactWeight: {_short(component.impactWeight)}",
            f"- score: {_short(component.score)}",
        ]
        if component.scenes:
            lines.append("- scenes:")
            lines += [f"  - {s.sceneName}: {s.count}" for s in component.scenes]
        if component.examples:
            lines.append("- examples:")
            lines += [f"  - {e}" for e in component.examples]
        lines.append("")
    return "\n".join(lines) + "\n"
