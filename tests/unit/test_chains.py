"""
Unit tests for chain assembly — ChainAssembler, ChainSetBuilder and the full assembly.

Uses real generated certificate files for the happy path and mock readers
to check ordering and short-circuiting in isolation.

Test categories:
  - Concatenation order and newline separators
  - Direct issuer certificate = first file of each chain
  - Empty file lists with and without require_at_least_one_chain
  - Fail-fast: first failing file aborts the whole configuration
  - Default/alternate merging and orphan alternates
"""

from __future__ import annotations

from collections.abc import Callable
from unittest.mock import MagicMock

import pytest
from railway import ErrorCode, Result, ResultAssertions

from tests.conftest import TestCertificate
from wfe_bootstrap.adapters.pem_reader import PemCertificateFileReader
from wfe_bootstrap.chains import (
    assemble_trust_material,
    build_chain_sets,
    load_certificate_chains,
)
from wfe_bootstrap.domain.models import LoadedCertificate

R3_URL = "http://r3.i.example.org/"
E1_URL = "http://e1.i.example.org/"

WriteFile = Callable[[str, bytes], str]


def _loaded(name: str) -> LoadedCertificate:
    """Stand-in LoadedCertificate whose certificate is a recognizable sentinel."""
    return LoadedCertificate(pem=f"PEM {name}\n".encode(), certificate=MagicMock(name=name))


def _make_reader(*results: Result[LoadedCertificate]) -> MagicMock:
    """Create a mock CertificateFileReader returning the given Results in order."""
    mock = MagicMock()
    mock.read.side_effect = list(results)
    return mock


@pytest.fixture()
def reader() -> PemCertificateFileReader:
    return PemCertificateFileReader()


# ─────────────────────── ChainAssembler ───────────────────────


class TestLoadCertificateChains:
    def test_concatenates_files_in_configured_order(
        self,
        reader: PemCertificateFileReader,
        write_chain_file: WriteFile,
        intermediate_r3: TestCertificate,
        root_x1: TestCertificate,
        cross_signed_root: TestCertificate,
    ) -> None:
        """
        GIVEN an issuer with chain files [a, b, c]
        WHEN the chains are loaded
        THEN the chain is "\\n" + a + "\\n" + b + "\\n" + c.
        """
        a = write_chain_file("a.pem", intermediate_r3.pem)
        b = write_chain_file("b.pem", root_x1.pem)
        c = write_chain_file("c.pem", cross_signed_root.pem)

        assembled = ResultAssertions.assert_success(
            load_certificate_chains({R3_URL: [a, b, c]}, True, reader)
        )

        assert assembled.chains[R3_URL] == (
            b"\n" + intermediate_r3.pem + b"\n" + root_x1.pem + b"\n" + cross_signed_root.pem
        )

    def test_records_only_first_certificate_as_issuer(
        self,
        reader: PemCertificateFileReader,
        write_chain_file: WriteFile,
        intermediate_r3: TestCertificate,
        root_x1: TestCertificate,
    ) -> None:
        a = write_chain_file("a.pem", intermediate_r3.pem)
        b = write_chain_file("b.pem", root_x1.pem)

        assembled = ResultAssertions.assert_success(
            load_certificate_chains({R3_URL: [a, b]}, True, reader)
        )

        assert assembled.issuer_certificates == (intermediate_r3.certificate,)

    def test_normalizes_missing_newline_inside_chain(
        self,
        reader: PemCertificateFileReader,
        write_chain_file: WriteFile,
        intermediate_r3: TestCertificate,
        root_x1: TestCertificate,
    ) -> None:
        a = write_chain_file("a.pem", intermediate_r3.pem.rstrip(b"\n"))
        b = write_chain_file("b.pem", root_x1.pem)

        assembled = ResultAssertions.assert_success(
            load_certificate_chains({R3_URL: [a, b]}, True, reader)
        )

        assert assembled.chains[R3_URL] == b"\n" + intermediate_r3.pem + b"\n" + root_x1.pem

    def test_one_issuer_certificate_per_issuer_in_config_order(self) -> None:
        r3, e1, root = _loaded("r3"), _loaded("e1"), _loaded("root")
        mock_reader = _make_reader(
            Result.success(r3), Result.success(root), Result.success(e1), Result.success(root),
        )

        assembled = ResultAssertions.assert_success(
            load_certificate_chains(
                {R3_URL: ["r3.pem", "root.pem"], E1_URL: ["e1.pem", "root.pem"]},
                True,
                mock_reader,
            )
        )

        assert assembled.issuer_certificates == (r3.certificate, e1.certificate)
        assert set(assembled.chains) == {R3_URL, E1_URL}

    def test_empty_list_fails_when_chain_required(self) -> None:
        """
        GIVEN require_at_least_one_chain=True and an issuer with no files
        WHEN the chains are loaded
        THEN the whole configuration fails, even if other issuers are valid.
        """
        mock_reader = _make_reader(Result.success(_loaded("r3")))

        result = load_certificate_chains({R3_URL: ["r3.pem"], E1_URL: []}, True, mock_reader)

        ResultAssertions.assert_failure(result, ErrorCode.CONFIGURATION_ERROR)
        ResultAssertions.assert_failure_message_contains(result, "no chain file names configured")
        ResultAssertions.assert_failure_message_contains(result, E1_URL)

    def test_empty_list_produces_no_entry_when_optional(self) -> None:
        mock_reader = _make_reader()

        assembled = ResultAssertions.assert_success(
            load_certificate_chains({R3_URL: []}, False, mock_reader)
        )

        assert R3_URL not in assembled.chains
        assert assembled.issuer_certificates == ()
        mock_reader.read.assert_not_called()

    def test_first_failing_file_aborts_remaining_reads(self) -> None:
        """
        GIVEN files [a, b, c] where b is invalid
        WHEN the chains are loaded
        THEN the failure from b is returned and c is never read.
        """
        mock_reader = _make_reader(
            Result.success(_loaded("a")),
            Result.failure(ErrorCode.TRAILING_DATA_ERROR, "b has leftovers"),
            Result.success(_loaded("c")),
        )

        result = load_certificate_chains({R3_URL: ["a", "b", "c"]}, True, mock_reader)

        error = ResultAssertions.assert_failure(result, ErrorCode.TRAILING_DATA_ERROR)
        assert error.message == "b has leftovers"
        assert mock_reader.read.call_count == 2

    def test_reader_receives_issuer_for_context(self) -> None:
        mock_reader = _make_reader(Result.success(_loaded("a")))

        load_certificate_chains({R3_URL: ["a.pem"]}, True, mock_reader)

        mock_reader.read.assert_called_once_with(R3_URL, "a.pem")

    def test_result_maps_are_read_only(self) -> None:
        assembled = ResultAssertions.assert_success(
            load_certificate_chains({R3_URL: ["a"]}, True, _make_reader(Result.success(_loaded("a"))))
        )

        with pytest.raises(TypeError):
            assembled.chains[E1_URL] = b"x"  # type: ignore[index]


# ─────────────────────── ChainSetBuilder ───────────────────────


class TestBuildChainSets:
    def test_default_then_alternate(self) -> None:
        """
        GIVEN defaults {X: D} and alternates {X: A}
        WHEN chain sets are built
        THEN X maps to (D, A) in that order.
        """
        chain_sets = ResultAssertions.assert_success(
            build_chain_sets({R3_URL: b"D"}, {R3_URL: b"A"})
        )

        assert chain_sets[R3_URL] == (b"D", b"A")

    def test_defaults_only(self) -> None:
        chain_sets = ResultAssertions.assert_success(build_chain_sets({R3_URL: b"D", E1_URL: b"E"}))

        assert chain_sets == {R3_URL: (b"D",), E1_URL: (b"E",)}

    def test_issuer_without_alternate_keeps_single_chain(self) -> None:
        chain_sets = ResultAssertions.assert_success(
            build_chain_sets({R3_URL: b"D", E1_URL: b"E"}, {R3_URL: b"A"})
        )

        assert chain_sets[E1_URL] == (b"E",)

    def test_orphan_alternate_fails_whole_build(self) -> None:
        result = build_chain_sets({R3_URL: b"D"}, {E1_URL: b"A"})

        ResultAssertions.assert_failure(result, ErrorCode.CONFIGURATION_ERROR)
        ResultAssertions.assert_failure_message_contains(result, E1_URL)
        ResultAssertions.assert_failure_message_contains(result, "does not exist in CertificateChains")

    def test_several_alternate_maps_append_in_order(self) -> None:
        chain_sets = ResultAssertions.assert_success(
            build_chain_sets({R3_URL: b"D"}, {R3_URL: b"A1"}, {R3_URL: b"A2"})
        )

        assert chain_sets[R3_URL] == (b"D", b"A1", b"A2")


# ─────────────────────── Full Assembly ───────────────────────


class TestAssembleTrustMaterial:
    def test_builds_default_and_alternate_chains(
        self,
        reader: PemCertificateFileReader,
        write_chain_file: WriteFile,
        intermediate_r3: TestCertificate,
        root_x1: TestCertificate,
        cross_signed_root: TestCertificate,
    ) -> None:
        r3 = write_chain_file("r3.pem", intermediate_r3.pem)
        x1 = write_chain_file("x1.pem", root_x1.pem)
        cross = write_chain_file("cross.pem", cross_signed_root.pem)

        trust = ResultAssertions.assert_success(
            assemble_trust_material({R3_URL: [r3, cross]}, {R3_URL: [r3, x1]}, reader)
        )

        assert trust.chains[R3_URL] == (
            b"\n" + intermediate_r3.pem + b"\n" + cross_signed_root.pem,
            b"\n" + intermediate_r3.pem + b"\n" + root_x1.pem,
        )
        assert trust.default_chain(R3_URL) == trust.chains[R3_URL][0]
        assert trust.alternate_chains(R3_URL) == trust.chains[R3_URL][1:]
        # Issuer certificates come from the default chains only
        assert trust.issuer_certificates == (intermediate_r3.certificate,)

    def test_no_alternates_configured(
        self,
        reader: PemCertificateFileReader,
        write_chain_file: WriteFile,
        intermediate_r3: TestCertificate,
    ) -> None:
        r3 = write_chain_file("r3.pem", intermediate_r3.pem)

        trust = ResultAssertions.assert_success(assemble_trust_material({R3_URL: [r3]}, None, reader))

        assert trust.chains[R3_URL] == (b"\n" + intermediate_r3.pem,)
        assert trust.issuer_urls == (R3_URL,)

    def test_empty_alternate_list_is_allowed(
        self,
        reader: PemCertificateFileReader,
        write_chain_file: WriteFile,
        intermediate_r3: TestCertificate,
    ) -> None:
        r3 = write_chain_file("r3.pem", intermediate_r3.pem)

        trust = ResultAssertions.assert_success(
            assemble_trust_material({R3_URL: [r3]}, {R3_URL: []}, reader)
        )

        assert len(trust.chains[R3_URL]) == 1

    def test_orphan_alternate_fails(
        self,
        reader: PemCertificateFileReader,
        write_chain_file: WriteFile,
        intermediate_r3: TestCertificate,
    ) -> None:
        r3 = write_chain_file("r3.pem", intermediate_r3.pem)

        result = assemble_trust_material({R3_URL: [r3]}, {E1_URL: [r3]}, reader)

        ResultAssertions.assert_failure(result, ErrorCode.CONFIGURATION_ERROR)

    def test_bad_alternate_file_fails_everything(
        self,
        reader: PemCertificateFileReader,
        write_chain_file: WriteFile,
        intermediate_r3: TestCertificate,
    ) -> None:
        r3 = write_chain_file("r3.pem", intermediate_r3.pem)
        crlf = write_chain_file("crlf.pem", intermediate_r3.pem.replace(b"\n", b"\r\n"))

        result = assemble_trust_material({R3_URL: [r3]}, {R3_URL: [crlf]}, reader)

        ResultAssertions.assert_failure(result, ErrorCode.ENCODING_ERROR)

    def test_alternates_not_read_when_defaults_fail(self) -> None:
        mock_reader = _make_reader(Result.failure(ErrorCode.FILE_ERROR, "missing"))

        result = assemble_trust_material({R3_URL: ["a"]}, {R3_URL: ["b"]}, mock_reader)

        ResultAssertions.assert_failure(result, ErrorCode.FILE_ERROR)
        assert mock_reader.read.call_count == 1

    def test_trust_material_is_immutable(
        self,
        reader: PemCertificateFileReader,
        write_chain_file: WriteFile,
        intermediate_r3: TestCertificate,
    ) -> None:
        r3 = write_chain_file("r3.pem", intermediate_r3.pem)
        trust = ResultAssertions.assert_success(assemble_trust_material({R3_URL: [r3]}, None, reader))

        with pytest.raises(TypeError):
            trust.chains[E1_URL] = (b"x",)  # type: ignore[index]
        with pytest.raises(AttributeError):
            trust.chains = {}  # type: ignore[misc]
