from pydantic import BaseModel, Field
from typing import Literal


class ConversionConfig(BaseModel):
    shortcut: bool = True
    simplify: bool = True
    merge_objects: bool = False
    strip_annotations: bool = False


class BatchConfig(BaseModel):
    concurrency: int = Field(default=16, gt=0)
    hidden: bool = True
    output_directory: str | None = None


class TypeScriptConfig(BaseModel):
    declaration: bool = False
    disable_lint_header: bool = False
    descriptive_header: bool = True
    use_unknown: bool = False


class GraphQLConfig(BaseModel):
    unsupported: Literal["ignore", "warn", "error"] = "ignore"
    null_type_name: str | None = None


class OpenApiConfig(BaseModel):
    format: Literal["json", "yaml", "yml"] = "yaml"
    title: str | None = None
    version: str = "1"


class SureTypeConfig(BaseModel):
    ref_method: Literal["no-refs", "provided", "ref-all"] = "provided"
    export_type: bool = True
    export_validator: bool = True
    export_ensurer: bool = True
    export_type_guard: bool = True
    use_unknown: bool = False
    inline_types: bool = False


class TypeBridgeConfig(BaseModel):
    conversion: ConversionConfig = Field(default_factory=ConversionConfig)
    batch: BatchConfig = Field(default_factory=BatchConfig)
    typescript: TypeScriptConfig = Field(default_factory=TypeScriptConfig)
    graphql: GraphQLConfig = Field(default_factory=GraphQLConfig)
    open_api: OpenApiConfig = Field(default_factory=OpenApiConfig)
    suretype: SureTypeConfig = Field(default_factory=SureTypeConfig)
    log_level: Literal["debug", "info", "warn", "error"] = "info"
    log_format: Literal["text", "json"] = "text"
