"""The built-in probe library, in execution order."""

from __future__ import annotations

from mcp_doctor.doctor.base import DiagnosticTest
from mcp_doctor.doctor.probes.lifecycle import InitializationFlowProbe
from mcp_doctor.doctor.probes.performance import ResponseTimeProbe
from mcp_doctor.doctor.probes.prompts import (
    PromptArgumentValidationProbe,
    PromptListingProbe,
    PromptRetrievalProbe,
    PromptsCapabilityProbe,
    TemplateRenderingProbe,
)
from mcp_doctor.doctor.probes.protocol import (
    BasicConnectivityProbe,
    ErrorCodeComplianceProbe,
    ErrorResponseFormatProbe,
    MessageFormatProbe,
    RequestIdHandlingProbe,
    TransportErrorHandlingProbe,
    VersionNegotiationProbe,
)
from mcp_doctor.doctor.probes.resources import (
    MimeTypeProbe,
    ResourceListingProbe,
    ResourceNotFoundProbe,
    ResourceReadingProbe,
    ResourcesCapabilityProbe,
    UriValidationProbe,
)
from mcp_doctor.doctor.probes.security import ErrorDisclosureProbe
from mcp_doctor.doctor.probes.tools import (
    ToolAnnotationsProbe,
    ToolErrorHandlingProbe,
    ToolExecutionProbe,
    ToolListingProbe,
    ToolSchemaProbe,
    ToolsCapabilityProbe,
)

ALL_PROBES: tuple[DiagnosticTest, ...] = (
    # Lifecycle
    InitializationFlowProbe(),
    # Protocol
    BasicConnectivityProbe(),
    TransportErrorHandlingProbe(),
    VersionNegotiationProbe(),
    MessageFormatProbe(),
    ErrorResponseFormatProbe(),
    ErrorCodeComplianceProbe(),
    RequestIdHandlingProbe(),
    # Tools
    ToolsCapabilityProbe(),
    ToolListingProbe(),
    ToolSchemaProbe(),
    ToolExecutionProbe(),
    ToolErrorHandlingProbe(),
    ToolAnnotationsProbe(),
    # Resources
    ResourcesCapabilityProbe(),
    ResourceListingProbe(),
    ResourceReadingProbe(),
    MimeTypeProbe(),
    UriValidationProbe(),
    ResourceNotFoundProbe(),
    # Prompts
    PromptsCapabilityProbe(),
    PromptListingProbe(),
    PromptRetrievalProbe(),
    PromptArgumentValidationProbe(),
    TemplateRenderingProbe(),
    # Performance and security
    ResponseTimeProbe(),
    ErrorDisclosureProbe(),
)
