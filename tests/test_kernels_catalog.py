import numpy as np
import pytest

from kernparity.errors import UnknownKernel
from kernparity.kernels import KernelCatalog, KernelOp, get_kernel_catalog


def test_catalog_names():
    catalog = get_kernel_catalog()
    assert catalog.names(KernelOp.DOT) == ["dotprod_float32", "dotprod_half_float", "dotprod_integer16"]
    assert "matmul_tiled" in catalog.names(KernelOp.MATMUL)
    assert "dotprod_ushort" in catalog
    assert "bogus" not in catalog


def test_resolve_alias_and_types():
    catalog = get_kernel_catalog()
    spec = catalog.resolve("matmul_w_half")
    assert spec.name == "matmul_half_float"
    assert spec.dtype == np.dtype(np.float16)
    assert spec.op is KernelOp.MATMUL
    assert catalog.resolve("dotprod_integer16").type_name == "uint16"


def test_resolve_unknown_and_wrong_op():
    catalog = get_kernel_catalog()
    with pytest.raises(UnknownKernel):
        catalog.resolve("dotprod_float64")
    with pytest.raises(UnknownKernel):
        catalog.resolve("dotprod_half_float", KernelOp.MATMUL)


def test_find_by_dtype():
    catalog = get_kernel_catalog()
    assert catalog.find(KernelOp.DOT, np.uint16).name == "dotprod_integer16"
    assert catalog.find(KernelOp.MATMUL, np.float32, tiled=True).name == "matmul_tiled"
    assert catalog.find(KernelOp.MATMUL, np.float64) is None


def test_bundled_sources_define_every_entry_point():
    catalog = get_kernel_catalog()
    for spec in catalog.specs():
        src = catalog.get_kernel_source(spec.source_file)
        assert src is not None, spec.source_file
        assert f"__kernel void {spec.entry_point}(" in src


def test_kernel_dir_override(monkeypatch, tmp_path):
    monkeypatch.setenv("KERNPARITY_KERNEL_DIR", str(tmp_path))
    catalog = KernelCatalog()
    assert catalog.kernels_dir == tmp_path
    assert catalog.get_kernel_source("dotprod.cl") is None


def test_alias_to_unregistered_kernel():
    with pytest.raises(UnknownKernel):
        KernelCatalog().alias("x", "not_registered")
