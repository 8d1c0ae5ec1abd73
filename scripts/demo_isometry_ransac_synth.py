import numpy as np

from stereoreg.ransac import RigidTransform
from stereoreg.registration import IsometryFilterConfig, isometry_filter, clean_points3d
from stereoreg.utils import setup_logger


def main() -> None:
    logger = setup_logger("stereoreg")
    rng = np.random.default_rng(0)

    # True motion between the two stereo frames
    T_true = RigidTransform.from_rvec_tvec([0.05, -0.2, 0.1], [0.3, -0.1, 0.05])

    # Triangulated features in front of the camera (meters)
    n_in = 200
    p_in = rng.uniform([-2.0, -1.0, 2.0], [2.0, 1.0, 8.0], size=(n_in, 3))
    x_in = T_true.apply(p_in)

    # Stereo noise
    x_in += rng.normal(0.0, 0.01, size=x_in.shape)

    # Wrong matches
    n_out = 80
    p_out = rng.uniform([-2.0, -1.0, 2.0], [2.0, 1.0, 8.0], size=(n_out, 3))
    x_out = rng.uniform([-2.0, -1.0, 2.0], [2.0, 1.0, 8.0], size=(n_out, 3))

    x_all = np.vstack([x_in, x_out])
    p_all = np.vstack([p_in, p_out])

    # A couple of failed triangulations
    x_all[5] = np.nan
    x_all, p_all, _ = clean_points3d(x_all, p_all, max_motion=5.0)

    res = isometry_filter(
        x_all,
        p_all,
        IsometryFilterConfig(max_steps=1000, threshold=0.05, seed=42),
    )

    print("T_true:\n", T_true.matrix)
    if res is None:
        logger.warning("RANSAC failed.")
        return

    print("T_est:\n", res.model.matrix)
    print("num_inliers:", res.inliers.shape[0], "/", x_all.shape[0])
    print("rms_error:", res.rms_error)
    print("iterations:", res.iterations)


if __name__ == "__main__":
    main()
