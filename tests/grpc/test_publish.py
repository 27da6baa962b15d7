from types import SimpleNamespace

from grpc_app.interceptors.publish import PublishInterceptor
from grpc_app.publish_policy import PublishPolicy, merge_policies, method_name_from_full


def _method(name, **options):
    fields = [(SimpleNamespace(name=key), value) for key, value in options.items()]
    opts = SimpleNamespace(ListFields=lambda: fields)
    return SimpleNamespace(name=name, GetOptions=lambda: opts)


def _file_descriptor(service_name, full_name, methods):
    service = SimpleNamespace(full_name=full_name, methods=methods)
    return SimpleNamespace(services_by_name={service_name: service})


def test_method_name_from_full():
    assert method_name_from_full("/example.ExampleService/GetExample") == "GetExample"
    assert method_name_from_full("GetExample") == "GetExample"


def test_policy_from_descriptor_reads_publish_option():
    fd = _file_descriptor(
        "ExampleService",
        "example.ExampleService",
        [
            _method("GetExample", publish=True),
            _method("DeleteExample", publish=False),
            _method("ListExamples"),
            _method("Other", deprecated=True),
        ],
    )
    policy = PublishPolicy.from_file_descriptor(fd, "ExampleService")

    assert policy.service == "example.ExampleService"
    assert policy.methods == {
        "GetExample": True,
        "DeleteExample": False,
        "ListExamples": True,
        "Other": True,
    }
    assert policy.unpublished() == ["DeleteExample"]
    assert not policy.is_published("/example.ExampleService/DeleteExample")
    assert policy.is_published("GetExample")


def test_unknown_method_defaults_to_published():
    policy = PublishPolicy.from_methods("example.ExampleService", {"DeleteExample": False})
    assert policy.is_published("NeverDeclared")


def test_missing_descriptor_or_service_publishes_everything():
    assert PublishPolicy.from_file_descriptor(None, "ExampleService").methods == {}
    fd = _file_descriptor("ExampleService", "example.ExampleService", [])
    policy = PublishPolicy.from_file_descriptor(fd, "MissingService")
    assert policy.service == "MissingService"
    assert policy.is_published("Anything")


def test_custom_option_name():
    fd = _file_descriptor("S", "pkg.S", [_method("M", expose=False, publish=True)])
    assert PublishPolicy.from_file_descriptor(fd, "S", option_name="expose").methods == {"M": False}


def test_merge_policies_indexes_by_service():
    a = PublishPolicy.from_methods("pkg.A", {"X": False})
    b = PublishPolicy.from_methods("pkg.B", {})
    assert merge_policies([a, b]) == {"pkg.A": a, "pkg.B": b}


def test_interceptor_only_filters_internal_callers():
    interceptor = PublishInterceptor([PublishPolicy.from_methods("pkg.A", {"Hidden": False, "Open": True})])

    assert interceptor.is_allowed("/pkg.A/Hidden", internal=False)
    assert not interceptor.is_allowed("/pkg.A/Hidden", internal=True)
    assert interceptor.is_allowed("/pkg.A/Open", internal=True)
    # services without a policy are not filtered
    assert interceptor.is_allowed("/pkg.Unknown/Hidden", internal=True)
