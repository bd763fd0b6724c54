# Developed in Jan 2026, author carlos.netto@gmail.com.
# Purpose: Validate JSON bodies against payment_schema/openapi.yaml.

import os
from functools import lru_cache

import yaml
from jsonschema import Draft7Validator
import referencing
from referencing.jsonschema import DRAFT7

SCHEMA_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "payment_schema", "openapi.yaml")
SCHEMA_URI = "http://instant-payment/openapi.yaml"


@lru_cache(maxsize=1)
def _registry():
    with open(SCHEMA_PATH, 'r') as f:
        document = yaml.safe_load(f)
    # Register the whole document so internal $refs resolve across components
    resource = referencing.Resource.from_contents(document, default_specification=DRAFT7)
    return referencing.Registry().with_resource(uri=SCHEMA_URI, resource=resource)


def validate_against_schema(data, schema_name):
    """Raises jsonschema.ValidationError when `data` does not match components/schemas/<schema_name>."""
    target_schema = {"$ref": f"{SCHEMA_URI}#/components/schemas/{schema_name}"}
    Draft7Validator(target_schema, registry=_registry()).validate(data)
