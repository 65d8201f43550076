from __future__ import annotations
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Any, Dict, List, Literal, Optional, get_args

RegistryItemType = Literal[
    "registry:component",
    "registry:ui",
    "registry:hook",
    "registry:lib",
    "registry:page",
    "registry:file",
    "registry:style",
    "registry:theme",
    "registry:block",
]
REGISTRY_TYPES = get_args(RegistryItemType)

# only these file kinds are installed to an explicit target path
TARGETED_FILE_TYPES = ("registry:page", "registry:file")


def _normalize_type(v: Any) -> Any:
    if v is None or v == "":
        return "registry:component"
    if isinstance(v, str) and not v.startswith("registry:"):
        return f"registry:{v}"
    return v


def _entry_name(item: Any) -> Optional[str]:
    if isinstance(item, ComponentRecord):
        return item.name
    if isinstance(item, dict):
        name = item.get("name")
        if isinstance(name, str) and name.strip():
            return name.strip()
    return None


def dedupe_entries(items: Any) -> Any:
    """
    Drop empty objects, non-objects and nameless entries, then keep only the
    first occurrence of each name. Order is preserved.
    """
    if not isinstance(items, list):
        return items
    seen: set[str] = set()
    out: list = []
    for item in items:
        name = _entry_name(item)
        if not name or name in seen:
            continue
        seen.add(name)
        out.append(item)
    return out


class RegistryFile(BaseModel):
    model_config = ConfigDict(extra="allow")

    path: str = ""
    type: RegistryItemType = "registry:component"
    content: Optional[str] = None
    target: Optional[str] = None

    @field_validator("type", mode="before")
    @classmethod
    def _type(cls, v: Any) -> Any:
        return _normalize_type(v)

    @model_validator(mode="after")
    def _target_only_for_targeted(self) -> "RegistryFile":
        if self.type not in TARGETED_FILE_TYPES:
            self.target = None
        return self


class CssVars(BaseModel):
    model_config = ConfigDict(extra="allow")

    light: Optional[Dict[str, str]] = None
    dark: Optional[Dict[str, str]] = None
    theme: Optional[Dict[str, str]] = None


class ComponentRecord(BaseModel):
    # unknown shadcn keys ($schema, tailwind, meta, categories, ...) ride along untouched
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str
    type: RegistryItemType = "registry:component"
    title: Optional[str] = None
    description: Optional[str] = None
    author: Optional[str] = None
    docs: Optional[str] = None
    dependencies: List[str] = Field(default_factory=list)
    dev_dependencies: List[str] = Field(default_factory=list, alias="devDependencies")
    registry_dependencies: List[str] = Field(default_factory=list, alias="registryDependencies")
    files: List[RegistryFile] = Field(default_factory=list)
    css_vars: Optional[CssVars] = Field(default=None, alias="cssVars")

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("component name must not be empty")
        return v

    @field_validator("type", mode="before")
    @classmethod
    def _type(cls, v: Any) -> Any:
        return _normalize_type(v)

    def to_kv(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class TenantRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    # older records stored the glyph as "emoji"
    icon: str = Field(validation_alias=AliasChoices("icon", "emoji"), serialization_alias="icon")
    created_at: int = Field(0, alias="createdAt")
    registry: List[ComponentRecord] = Field(default_factory=list)
    name: Optional[str] = None
    description: Optional[str] = None

    @field_validator("registry", mode="before")
    @classmethod
    def _dedupe(cls, v: Any) -> Any:
        if v is None:
            return []
        return dedupe_entries(v)

    @property
    def component_names(self) -> List[str]:
        return [c.name for c in self.registry]

    def find(self, name: str) -> Optional[ComponentRecord]:
        for comp in self.registry:
            if comp.name == name:
                return comp
        return None

    def to_kv(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class TenantSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tenant: str
    icon: str
    created_at: int = Field(alias="createdAt")
    components_count: int = Field(alias="componentsCount")
    name: str
    description: str
