from dpgm.base.domain import Domain, make_domain, union, intersect, difference, includes, disjoint

__all__ = ["Domain", "make_domain", "union", "intersect", "difference", "includes", "disjoint"]
