from pydantic.alias_generators import to_camel

# JSON payloads use camelCase keys; ORM attributes stay snake_case.
camel_config = {
    "from_attributes": True,
    "populate_by_name": True,
    "alias_generator": to_camel,
}
