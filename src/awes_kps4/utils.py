import numpy as np
from scipy.spatial.transform import Rotation as R

from awes_kps4.exceptions import DegenerateGeometry

EPSILON = 1e-12

# %% Function definitions


def normalize(vector, error=DegenerateGeometry):
    """
    Returns the unit vector of `vector`.

    Parameters:
    vector (np.ndarray): The vector to be normalized.
    error (type): Exception raised when the vector has (almost) zero length.
    """
    magnitude = np.linalg.norm(vector)
    if magnitude < EPSILON:
        raise error(f"Cannot normalize vector {vector} of length {magnitude}")
    return vector / magnitude


def project_onto_plane(vector: np.ndarray, plane_normal: np.ndarray) -> np.ndarray:
    """
    Projects a vector onto a plane defined by its normal.

    Parameters:
    vector (array-like): The vector to be projected onto the plane.
    plane_normal (array-like): The unit normal vector of the plane.

    Returns:
    array-like: The projected vector onto the plane.
    """
    return vector - np.dot(vector, plane_normal) * plane_normal


def acos2(arg):
    """Arc cosine that tolerates arguments slightly outside [-1, 1] due to rounding."""
    return np.arccos(np.clip(arg, -1.0, 1.0))


def rotate_vector_around_axis(vector, rotation_axis, theta):
    """
    Rotates a vector v around an axis u by an angle theta using Rodrigues' rotation formula.

    Parameters:
    vector (np.ndarray): The vector to be rotated.
    rotation_axis (np.ndarray): The axis vector around which to rotate.
    theta (float): The angle of rotation in radians.

    Returns:
    np.ndarray: The rotated vector.
    """
    rotation_axis = rotation_axis / np.linalg.norm(rotation_axis)

    cos_theta = np.cos(theta)
    sin_theta = np.sin(theta)

    v_rot = (
        vector * cos_theta
        + np.cross(rotation_axis, vector) * sin_theta
        + rotation_axis * np.dot(rotation_axis, vector) * (1 - cos_theta)
    )
    return v_rot


def Rz(theta):
    """Generate a rotation matrix for a rotation about the z-axis by `theta` radians."""
    return np.array(
        [
            [np.cos(theta), -np.sin(theta), 0],
            [np.sin(theta), np.cos(theta), 0],
            [0, 0, 1],
        ]
    )


def calculate_polar_coordinates(r):
    # Calculate elevation, azimuth and distance from a position vector.
    r_mod = np.linalg.norm(r)
    az = np.arctan2(r[1], r[0])
    el = np.arcsin(r[2] / r_mod)
    return el, az, r_mod


def calculate_euler_from_reference_frame(dcm):

    # Calculate the roll, pitch and yaw angles from a direction cosine matrix
    r = R.from_matrix(dcm)
    euler = r.as_euler("xyz")

    return euler[0], euler[1], euler[2]
