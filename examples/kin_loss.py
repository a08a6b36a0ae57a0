"""
Kin Loss Example
================

How many relatives Focal loses over her life, per birth cohort.
"""
from matkin import SyntheticRates, compute_kinship, lifetime_death_burden


def main(**kwargs):
    print("=" * 70)
    print("Kin Loss")
    print("=" * 70)

    n_ages = kwargs.get("n_ages", 101)
    start = kwargs.get("start", 1950)
    end = kwargs.get("end", 2020)
    cohorts = kwargs.get("cohorts", [start, start + 20])

    frames = SyntheticRates(n_ages=n_ages, start=start, end=end).frames()
    result = compute_kinship(
        frames["survival"], frames["fertility"], population=frames["population"],
        stable=False, focal_cohort=cohorts, living_only=False,
    )

    burden = lifetime_death_burden(result.summary, time_unit="cohort")
    print("\nKin lost by the last observed Focal age:")
    for cohort, lost in burden.items():
        print(f"  cohort {cohort}: {lost:.2f}")

    mothers = result.for_kin("m")
    first = mothers[mothers["cohort"] == cohorts[0]]
    print(f"\nCohort {cohorts[0]}, probability mother has died by age:")
    for _, row in first[first["age_focal"] % 10 == 0].iterrows():
        print(f"  age {row['age_focal']:>3}: {row['count_cum_dead']:.3f}")

    return result, burden


if __name__ == "__main__":
    main()
