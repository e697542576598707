"""Tests for schema tables and the class-scoped schema cache."""
import threading

import pytest

from attrstate import (
    AttributeRegistry,
    AttributeSpec,
    DuplicateAttribute,
    Flag,
    Schema,
    SchemaBuilder,
    clear_schema_cache,
    get_class_schema,
)


class Base:
    __attributes__ = (AttributeSpec('a', flags=Flag.REQUIRED), AttributeSpec('b', default=1))


class Derived(Base):
    __attributes__ = (AttributeSpec('c'),)


class TestSchema:
    def test_duplicate_names(self):
        with pytest.raises(DuplicateAttribute):
            Schema([AttributeSpec('a'), AttributeSpec('a')])

    def test_required_names(self):
        schema = Schema([
            AttributeSpec('a', flags=Flag.REQUIRED),
            AttributeSpec('b', flags=Flag.REQUIRED, default=0),
            AttributeSpec('c', flags=Flag.REQUIRED | Flag.AUTOMATIC),
        ])
        assert schema.required_names() == ['a']

    def test_builder(self):
        builder = SchemaBuilder(Schema([AttributeSpec('a')]))
        assert builder('a').name == 'a'
        assert builder('b') is None

    def test_specs_build_fresh_descriptors(self, owner):
        schema = Schema(Base.__attributes__)
        first = AttributeRegistry(owner, schema=schema)
        second = AttributeRegistry(owner, schema=schema)
        first.initialize({'a': 1})
        second.initialize({'a': 2})
        assert first.get('a') == 1
        assert second.get('a') == 2


class TestClassSchemaCache:
    def test_merged_along_mro(self):
        assert get_class_schema(Derived).names == ['a', 'b', 'c']

    def test_built_once(self):
        assert get_class_schema(Derived) is get_class_schema(Derived)

    def test_clear(self):
        first = get_class_schema(Base)
        clear_schema_cache()
        assert get_class_schema(Base) is not first

    def test_concurrent_first_access(self):
        results = []
        barrier = threading.Barrier(8)

        def load():
            barrier.wait()
            results.append(get_class_schema(Derived))

        threads = [threading.Thread(target=load) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert len(results) == 8
        assert all(schema is results[0] for schema in results)
