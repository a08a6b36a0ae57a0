"""
Time-Varying Kinship Example
============================

Cohort and period views of kinship when survival improves and fertility
falls over calendar time.
"""
from matkin import SyntheticRates, compute_kinship


def main(**kwargs):
    print("=" * 70)
    print("Time-Varying Kinship")
    print("=" * 70)

    n_ages = kwargs.get("n_ages", 101)
    start = kwargs.get("start", 1950)
    end = kwargs.get("end", 2020)
    cohort = kwargs.get("cohort", start + 10)
    kin = kwargs.get("kin", ["m", "gm", "d", "os", "ys"])

    frames = SyntheticRates(n_ages=n_ages, start=start, end=end).frames()
    U, f, N = frames["survival"], frames["fertility"], frames["population"]

    by_cohort = compute_kinship(
        U, f, population=N, stable=False, focal_cohort=cohort, selected_kin=kin
    )
    by_year = compute_kinship(
        U, f, population=N, stable=False, focal_year=end, selected_kin=kin
    )

    print(f"\nCohort {cohort}, daughters by Focal age:")
    daughters = by_cohort.for_kin("d")
    for _, row in daughters[daughters["age_focal"] % 10 == 0].iterrows():
        print(f"  age {row['age_focal']:>3} ({row['year']}): {row['count_living']:.3f}")

    print(f"\nYear {end}, mothers by Focal age:")
    mothers = by_year.for_kin("m")
    for _, row in mothers[mothers["age_focal"] % 10 == 0].iterrows():
        print(f"  age {row['age_focal']:>3} (cohort {row['cohort']}): {row['count_living']:.3f}")

    return by_cohort, by_year


if __name__ == "__main__":
    main()
