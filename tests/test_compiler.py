import logging

import pytest
from graphql import build_schema, parse

from modelql import templates as T
from modelql.compiler import DISABLED, Operation, generate_schema_fragments, model_to_graphql
from modelql.classifier import Buckets
from modelql.core.errors import SchemaError
from modelql.core.fields import create_model, field, resolve_as
from tests.models import make_foo, make_post


async def noop(root, info, **kwargs):
    return None


QUERIES = {'single': noop, 'multi': noop}
MUTATIONS = {'create': noop, 'update': noop, 'upsert': noop, 'delete': noop}


def definitions(sdl):
    return {d.name.value: d for d in parse(sdl).definitions if getattr(d, 'name', None) is not None}


def field_names(definition):
    return [f.name.value for f in definition.fields]


def compile_post(**kwargs):
    kwargs.setdefault('resolvers', QUERIES)
    kwargs.setdefault('mutations', MUTATIONS)
    return model_to_graphql(make_post(), **kwargs)


def test_compilation_is_deterministic():
    assert compile_post().sdl == compile_post().sdl


def test_emitted_types_in_order():
    compiled = compile_post()
    emitted = [d.name.value for d in parse(compiled.sdl).definitions]
    assert emitted == [
        'Post',
        'DeletePostInput',
        'SinglePostInput',
        'MultiPostInput',
        'SinglePostOutput',
        'MultiPostOutput',
        'PostMutationOutput',
        'CreatePostInput',
        'CreatePostDataInput',
        'UpdatePostInput',
        'UpsertPostInput',
        'UpdatePostDataInput',
        'PostFilterInput',
        'PostSortInput',
        'PostSelectorInput',
        'PostSelectorUniqueInput',
        'PostAddress',
        'CreatePostAddressDataInput',
        'PostAddressFilterInput',
        'PostAddressSortInput',
    ]


def test_computed_fields_never_reach_inputs():
    defs = definitions(compile_post().sdl)
    assert 'wordCount' in field_names(defs['Post'])
    assert 'user' in field_names(defs['Post'])
    for name in ('CreatePostDataInput', 'UpdatePostDataInput', 'PostFilterInput', 'PostSortInput'):
        assert 'wordCount' not in field_names(defs[name])
        assert 'user' not in field_names(defs[name])
        assert 'comments' not in field_names(defs[name])


def test_descriptions_are_emitted():
    defs = definitions(compile_post().sdl)
    assert defs['Post'].description.value == 'A blog post'
    title = next(f for f in defs['Post'].fields if f.name.value == 'title')
    assert title.description.value == 'Post title'


def test_sdl_builds_with_base_definitions():
    compiled = compile_post()
    sdl = '\n\n'.join([
        T.base_sdl(),
        compiled.sdl,
        'type User { _id: String }',
        'type Comment { _id: String }',
        T.root_type_template('Query', compiled.queries),
        T.root_type_template('Mutation', compiled.mutations),
    ])
    schema = build_schema(sdl)
    assert set(schema.query_type.fields) == {'post', 'posts'}
    assert set(schema.mutation_type.fields) == {'createPost', 'updatePost', 'upsertPost', 'deletePost'}
    assert str(schema.query_type.fields['posts'].type) == 'MultiPostOutput'


def test_resolver_tables():
    compiled = compile_post()
    assert compiled.resolvers['Query'] == {'post': noop, 'posts': noop}
    assert set(compiled.resolvers['Mutation']) == {'createPost', 'updatePost', 'upsertPost', 'deletePost'}
    assert set(compiled.field_resolvers['Post']) == {'wordCount'}


def test_operation_descriptions():
    compiled = compile_post(resolvers={'single': Operation(noop, 'One post'), 'multi': noop})
    assert compiled.queries[0] == ('post(input: SinglePostInput): SinglePostOutput', 'One post')
    assert compiled.queries[1][1] is None


def test_disabled_entries_and_tables():
    compiled = compile_post(resolvers={'single': DISABLED, 'multi': noop}, mutations=DISABLED)
    assert list(compiled.resolvers['Query']) == ['posts']
    assert compiled.mutations == []
    assert compiled.resolvers['Mutation'] == {}


def test_missing_resolvers_are_schema_errors():
    with pytest.raises(SchemaError):
        model_to_graphql(make_post(), resolvers=None, mutations=MUTATIONS)
    with pytest.raises(SchemaError):
        model_to_graphql(make_post(), resolvers={'single': noop}, mutations=MUTATIONS)
    with pytest.raises(SchemaError):
        model_to_graphql(make_post(), resolvers=QUERIES, mutations={'create': noop})


def test_model_without_readable_fields():
    Hidden = create_model('Hidden', {'a': field(str, can_create=True)})
    with pytest.raises(SchemaError) as exc:
        model_to_graphql(Hidden, resolvers=QUERIES, mutations=MUTATIONS)
    assert "doesn't have any readable fields" in str(exc.value)


def test_nested_type_without_fields():
    with pytest.raises(SchemaError):
        generate_schema_fragments(type_name='Empty', fields=Buckets(), is_nested=True)


def test_empty_bucket_mutation_is_skipped_with_warning(caplog):
    caplog.set_level(logging.WARNING, logger='modelql')
    ReadOnly = create_model('ReadOnly', {'a': field(str, can_read=True)})
    compiled = model_to_graphql(ReadOnly, resolvers=QUERIES, mutations=MUTATIONS)
    assert set(compiled.resolvers['Mutation']) == {'deleteReadOnly'}
    messages = [r.getMessage() for r in caplog.records if r.levelno == logging.WARNING]
    assert any('"create" mutation for model ReadOnly' in m for m in messages)
    assert any('"update" mutation for model ReadOnly' in m for m in messages)
    assert any('"upsert" mutation for model ReadOnly' in m for m in messages)
    defs = definitions(compiled.sdl)
    assert 'CreateReadOnlyDataInput' not in defs
    assert 'UpdateReadOnlyInput' not in defs


def test_model_without_filterable_fields_omits_filter_references():
    Blob = create_model('Blob', {'payload': field(dict, can_read=True, can_update=True)})
    compiled = model_to_graphql(Blob, resolvers=QUERIES, mutations=MUTATIONS)
    defs = definitions(compiled.sdl)
    assert 'BlobFilterInput' not in defs
    assert field_names(defs['SingleBlobInput']) == ['id', 'allowNull', 'contextName']
    assert field_names(defs['UpdateBlobInput']) == ['id', 'data']


def test_foo_unique_selector_template():
    defs = definitions(model_to_graphql(make_foo(), resolvers=QUERIES, mutations=MUTATIONS).sdl)
    assert field_names(defs['FooSelectorUniqueInput']) == ['_id', 'documentId']
    assert field_names(defs['FooSelectorInput']) == ['AND', 'OR', '_id']


def test_explicit_nested_type_is_emitted_once():
    geo = {'lat': field(float, can_read=True), 'lng': field(float, can_read=True)}
    Place = create_model('Place', {
        'a': field(geo, can_read=True, type_name='GeoPoint'),
        'b': field(geo, can_read=True, type_name='GeoPoint'),
    })
    compiled = model_to_graphql(Place, resolvers=QUERIES, mutations=DISABLED)
    emitted = [d.name.value for d in parse(compiled.sdl).definitions]
    assert emitted.count('GeoPoint') == 1


def test_custom_field_resolver_is_collected():
    def shout(root, info):
        return root['name'].upper()

    M = create_model('M', {
        'name': field(str, can_read=True),
        'loud': field(str, can_read=True, resolve_as=resolve_as('String', resolver=shout)),
    })
    compiled = model_to_graphql(M, resolvers=QUERIES, mutations=DISABLED)
    assert compiled.field_resolvers == {'M': {'loud': shout}}
