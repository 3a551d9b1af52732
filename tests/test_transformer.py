# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Tests for the OpenAPI to WSO2 API definition transformer."""

import copy

import pytest

from wso2_reconciler.errors import LintError, ValidationError
from wso2_reconciler.models import ApiDefinition, ApiOperation, CorsConfiguration
from wso2_reconciler.openapi import (
    DEFAULT_CORS_ALLOW_HEADERS,
    DEFAULT_CORS_ALLOW_METHODS,
    api_operations_from_document,
    apply_cors_defaults,
    apply_defaults,
    normalize_cors_configuration,
    openapi_similarity_failures,
    prepare_api_definition,
    to_wire_payload,
    validate_api_definition,
)


@pytest.fixture
def definition() -> ApiDefinition:
    return ApiDefinition(
        name="petstore",
        context="/petstore",
        gateway_environments=["Production and Sandbox"],
        endpoint_config={"endpoint_type": "http"},
    )


class TestValidateApiDefinition:
    """Test required field validation."""

    def test_valid(self, definition):
        validate_api_definition(definition)

    @pytest.mark.parametrize(
        "field,update",
        [
            ("context", {"context": None}),
            ("name", {"name": None}),
            ("gatewayEnvironments", {"gateway_environments": []}),
            ("endpointConfig", {"endpoint_config": None}),
            ("visibleRoles", {"visibility": "RESTRICTED"}),
            ("accessControlRoles", {"access_control": "RESTRICTED"}),
        ],
    )
    def test_invalid(self, definition, field, update):
        with pytest.raises(ValidationError) as exc_info:
            validate_api_definition(definition.model_copy(update=update))
        assert exc_info.value.field == field

    def test_restricted_with_roles(self, definition):
        validate_api_definition(
            definition.model_copy(update={"visibility": "RESTRICTED", "visible_roles": ["admin"]})
        )


class TestOperations:
    """Test operation synthesis from the document."""

    def test_operations_from_document(self, petstore_document):
        operations = api_operations_from_document(petstore_document)
        assert [(op.target, op.verb) for op in operations] == [
            ("/pets", "get"),
            ("/pets", "post"),
            ("/pets/{petId}", "get"),
        ]
        assert operations[0].throttling_policy == "Gold"
        assert operations[0].auth_type == "Any"
        assert operations[1].auth_type == "Application User"
        assert operations[1].throttling_policy == "Unlimited"

    def test_non_verb_keys_are_not_operations(self):
        document = {
            "paths": {
                "/a": {
                    "summary": "not an operation",
                    "parameters": [],
                    "x-custom": {"responses": {}},
                    "get": {"responses": {"200": {"description": "ok"}}},
                }
            }
        }
        assert [op.verb for op in api_operations_from_document(document)] == ["get"]


class TestApplyDefaults:
    """Test backfilling a definition from the document and WSO2 defaults."""

    def test_backfills_from_document(self, definition, petstore_document):
        result = apply_defaults(definition, petstore_document)

        assert result.version == "1.0.0"
        assert result.description == "A sample pet store API"
        assert result.tags == ["pets"]
        assert result.business_information.business_owner == "Pet Team"
        assert result.business_information.technical_owner_email == "pets@example.com"
        assert len(result.operations) == 3

    def test_server_defaults(self, definition, petstore_document):
        result = apply_defaults(definition, petstore_document)

        assert result.security_scheme == ["oauth2"]
        assert result.is_default_version is True
        assert result.type == "HTTP"
        assert result.transport == ["https"]
        assert result.policies == ["Unlimited"]
        assert result.api_throttling_policy == "Unlimited"
        assert result.endpoint_implementation_type == "ENDPOINT"
        assert result.subscription_availability == "CURRENT_TENANT"

    def test_explicit_values_are_kept(self, definition, petstore_document):
        explicit = definition.model_copy(
            update={
                "version": "2.0.0",
                "description": "mine",
                "tags": ["custom"],
                "transport": ["http", "https"],
            }
        )
        result = apply_defaults(explicit, petstore_document)

        assert result.version == "2.0.0"
        assert result.description == "mine"
        assert result.tags == ["custom"]
        assert result.transport == ["http", "https"]

    def test_caller_operations_are_appended(self, definition, petstore_document):
        override = ApiOperation(target="/pets", verb="GET", auth_type="None")
        result = apply_defaults(
            definition.model_copy(update={"operations": [override]}), petstore_document
        )

        assert len(result.operations) == 4
        assert result.operations[-1] == override

    def test_missing_version(self, definition, petstore_document):
        document = copy.deepcopy(petstore_document)
        del document["info"]["version"]

        with pytest.raises(ValidationError) as exc_info:
            apply_defaults(definition, document)
        assert exc_info.value.field == "version"

    def test_managed_tag(self, definition, petstore_document):
        result = apply_defaults(definition, petstore_document, managed_tag="managed-by-cfn")
        assert result.tags == ["pets", "managed-by-cfn"]

    def test_managed_tag_not_duplicated(self, definition, petstore_document):
        tagged = definition.model_copy(update={"tags": ["managed-by-cfn"]})
        result = apply_defaults(tagged, petstore_document, managed_tag="managed-by-cfn")
        assert result.tags == ["managed-by-cfn"]

    def test_input_definition_is_not_modified(self, definition, petstore_document):
        apply_defaults(definition, petstore_document)
        assert definition.version is None
        assert definition.operations is None


class TestCorsDefaults:
    """Test CORS sugar and normalisation."""

    def test_origins_only_fills_the_rest(self):
        cors = apply_cors_defaults(
            CorsConfiguration(access_control_allow_origins=["https://app.example.com"])
        )
        assert cors.cors_configuration_enabled is True
        assert cors.access_control_allow_credentials is False
        assert cors.access_control_allow_headers == DEFAULT_CORS_ALLOW_HEADERS
        assert cors.access_control_allow_methods == DEFAULT_CORS_ALLOW_METHODS

    def test_explicit_values_are_kept(self):
        cors = apply_cors_defaults(
            CorsConfiguration(
                access_control_allow_origins=["*"],
                access_control_allow_credentials=True,
                access_control_allow_methods=["GET"],
                cors_configuration_enabled="false",
            )
        )
        assert cors.access_control_allow_credentials is True
        assert cors.access_control_allow_methods == ["GET"]
        assert cors.cors_configuration_enabled == "false"

    def test_no_cors_stays_absent(self, definition, petstore_document):
        result = apply_defaults(definition, petstore_document)
        assert result.cors_configuration is None
        assert "corsConfiguration" not in to_wire_payload(result)

    def test_payload_stringifies_flags(self, definition, petstore_document):
        with_cors = definition.model_copy(
            update={"cors_configuration": CorsConfiguration(access_control_allow_origins=["*"])}
        )
        payload = to_wire_payload(apply_defaults(with_cors, petstore_document))

        assert payload["corsConfiguration"]["corsConfigurationEnabled"] == "true"
        assert payload["corsConfiguration"]["accessControlAllowCredentials"] == "false"
        assert payload["corsConfiguration"]["accessControlAllowOrigins"] == ["*"]

    def test_normalize_keeps_strings_and_absent_flags(self):
        assert normalize_cors_configuration(None) is None
        assert normalize_cors_configuration({"corsConfigurationEnabled": "true"}) == {
            "corsConfigurationEnabled": "true"
        }
        assert normalize_cors_configuration({"accessControlAllowCredentials": True}) == {
            "accessControlAllowCredentials": "true"
        }


class TestWirePayload:
    """Test the JSON body sent to the publisher."""

    def test_camel_case_and_no_nulls(self, definition, petstore_document):
        payload = to_wire_payload(apply_defaults(definition, petstore_document))

        assert payload["gatewayEnvironments"] == ["Production and Sandbox"]
        assert payload["isDefaultVersion"] is True
        assert payload["maxTps"] == {"production": 300, "sandbox": 10}
        assert payload["operations"][0] == {
            "target": "/pets",
            "verb": "get",
            "authType": "Any",
            "throttlingPolicy": "Gold",
        }
        assert "visibleRoles" not in payload

    def test_unknown_fields_pass_through(self, definition, petstore_document):
        extended = ApiDefinition.model_validate(
            {**definition.to_wire(), "apiSecurityLevel": "strict"}
        )
        assert to_wire_payload(extended)["apiSecurityLevel"] == "strict"


class TestPrepareApiDefinition:
    """Test the whole pipeline."""

    def test_prepare(self, definition, petstore_document):
        completed, document = prepare_api_definition(definition, petstore_document)
        assert completed.version == "1.0.0"
        assert document is petstore_document

    def test_prepare_converts_31(self, definition, petstore_document):
        document = {**copy.deepcopy(petstore_document), "openapi": "3.1.0"}
        _, converted = prepare_api_definition(definition, document)
        assert converted["openapi"] == "3.0.3"
        assert document["openapi"] == "3.1.0"

    def test_prepare_lints_before_defaults(self, definition, petstore_document):
        document = copy.deepcopy(petstore_document)
        document["paths"]["/pets/{id}"] = document["paths"].pop("/pets/{petId}")

        with pytest.raises(LintError):
            prepare_api_definition(definition, document)

    def test_prepare_validates_definition_first(self, definition, petstore_document):
        with pytest.raises(ValidationError):
            prepare_api_definition(definition.model_copy(update={"name": None}), {"openapi": "2.0"})


class TestSimilarity:
    """Test the stored document similarity check."""

    def test_identical(self, petstore_document):
        assert openapi_similarity_failures(petstore_document, petstore_document) == []

    def test_wso2_rewrites_are_ignored(self, petstore_document):
        stored = copy.deepcopy(petstore_document)
        stored["x-wso2-auth-header"] = "Authorization"
        stored["paths"]["/pets"]["get"]["x-auth-type"] = "Application & Application User"
        stored["components"]["schemas"]["Extra"] = {"type": "object"}
        assert openapi_similarity_failures(petstore_document, stored) == []

    def test_differences_are_named(self, petstore_document):
        stored = copy.deepcopy(petstore_document)
        stored["info"]["version"] = "0.9.0"
        del stored["paths"]["/pets"]["post"]
        del stored["components"]["schemas"]["Pet"]

        assert openapi_similarity_failures(petstore_document, stored) == [
            "info.version",
            "paths./pets",
            "components.schemas",
        ]

    def test_missing_path(self, petstore_document):
        stored = copy.deepcopy(petstore_document)
        del stored["paths"]["/pets/{petId}"]
        assert "paths" in openapi_similarity_failures(petstore_document, stored)
